"""
Chat aggregator service.

Orchestrates discovery of Cursor workspace databases, extraction of chat
candidates, classification, normalization and aggregate building, and
persists the resulting Projects and Chats through snapshot storage.

Every collaborator is injected, so each stage can be replaced in tests.
"""

import logging
import threading
from typing import List, Optional

from cursor_chat_manager.core.db.snapshot_storage import SnapshotStorage
from cursor_chat_manager.core.db.store_reader import StoreReader
from cursor_chat_manager.core.errors import StoreUnavailable
from cursor_chat_manager.core.logging_config import is_debug_enabled
from cursor_chat_manager.core.models import (
    CandidateRecord,
    Chat,
    ProcessingResult,
    ProcessingStats,
    Project,
)
from cursor_chat_manager.extractors.cursor import CursorWorkspaceExtractor
from cursor_chat_manager.readers.workspace_reader import WorkspaceDatabase, WorkspaceLocator
from cursor_chat_manager.transformers.builder import AggregateBuilder, ProjectRegistry
from cursor_chat_manager.transformers.classifier import RecordClassifier
from cursor_chat_manager.transformers.normalizer import ShapeNormalizer

logger = logging.getLogger(__name__)

PROJECTS_KEY = "projects"
CHATS_KEY = "chats"

# Records logged in detail per database when debug logging is on
SAMPLE_RECORDS = 3


class ChatAggregator:
    """
    Runs the discovery pipeline over every workspace database.

    Databases are processed one at a time, to completion. A failure in one
    record is logged and the next record is processed; a failure in one
    database is logged and the next database is processed. The current
    connection is always closed before moving on.

    Attributes
    ----------
    locator : WorkspaceLocator
        Finds workspace databases
    reader : StoreReader
        Reads and decodes candidate rows
    classifier : RecordClassifier
        Assigns each candidate a Classification variant
    normalizer : ShapeNormalizer
        Converts chat payloads to canonical messages
    builder : AggregateBuilder
        Builds Projects, Chats and Dialogues
    extractor : CursorWorkspaceExtractor
        Attaches workspace context to candidate rows

    Methods
    -------
    process_chats(cancel_event)
        Run the full pipeline and return Projects, Chats and counters
    save_processed_data(projects, chats)
        Persist a result snapshot
    load_processed_data()
        Load the last saved snapshot
    clear_all_cached_data()
        Drop saved snapshots and every cached connection and query
    refresh(force)
        Rescan and save, optionally clearing everything first

    Example
    -------
    >>> aggregator = ChatAggregator()
    >>> result = aggregator.process_chats()
    >>> for project in result.projects:
    ...     print(project.name, len(project.chats))
    """

    def __init__(
        self,
        locator: Optional[WorkspaceLocator] = None,
        reader: Optional[StoreReader] = None,
        classifier: Optional[RecordClassifier] = None,
        normalizer: Optional[ShapeNormalizer] = None,
        builder: Optional[AggregateBuilder] = None,
        snapshot_storage: Optional[SnapshotStorage] = None,
        extractor: Optional[CursorWorkspaceExtractor] = None,
    ):
        """
        Initialize aggregator.

        Parameters
        ----------
        locator, reader, classifier, normalizer, builder : optional
            Pipeline collaborators; defaults are constructed when omitted
        snapshot_storage : SnapshotStorage, optional
            Persistence for processed results. If None, the default
            snapshot database is opened on first use.
        extractor : CursorWorkspaceExtractor, optional
            If None, one is built around ``reader``
        """
        self.locator = locator or WorkspaceLocator()
        self.classifier = classifier or RecordClassifier()
        self.reader = reader or StoreReader(record_filter=self.classifier.is_valid_chat_data)
        self.normalizer = normalizer or ShapeNormalizer()
        self.builder = builder or AggregateBuilder(self.normalizer)
        self.extractor = extractor or CursorWorkspaceExtractor(self.reader)
        self._snapshot_storage = snapshot_storage

    @property
    def snapshot_storage(self) -> SnapshotStorage:
        if self._snapshot_storage is None:
            self._snapshot_storage = SnapshotStorage()
        return self._snapshot_storage

    def process_chats(self, cancel_event: Optional[threading.Event] = None) -> ProcessingResult:
        """
        Discover, extract, classify, normalize and build every chat.

        Parameters
        ----------
        cancel_event : threading.Event, optional
            Checked between databases; once set, the scan stops and the
            Projects and Chats already built are returned

        Returns
        -------
        ProcessingResult
            Projects, Chats, and per-run counters
        """
        projects = ProjectRegistry()
        chats: List[Chat] = []
        stats = ProcessingStats()

        databases = self.locator.list_workspace_databases()
        logger.info("Processing %d workspace databases", len(databases))

        for index, database in enumerate(databases):
            if cancel_event is not None and cancel_event.is_set():
                logger.warning(
                    "Scan cancelled after %d of %d databases", index, len(databases)
                )
                break
            self._process_database(database, projects, chats, stats)

        stats.chats = len(chats)
        stats.projects = len(projects)

        logger.info("Final processing results:")
        logger.info("  - Total items processed: %d", stats.total_records)
        logger.info("  - Valid chat records: %d", stats.valid_records)
        logger.info("  - Invalid/system data skipped: %d", stats.invalid_records)
        logger.info("  - Final projects: %d", stats.projects)
        logger.info("  - Final chats: %d", stats.chats)

        return ProcessingResult(projects=projects.values(), chats=chats, stats=stats)

    def _process_database(
        self,
        database: WorkspaceDatabase,
        projects: ProjectRegistry,
        chats: List[Chat],
        stats: ProcessingStats,
    ) -> None:
        try:
            self.extractor.open(database)
        except StoreUnavailable as e:
            stats.databases_failed += 1
            logger.warning("Skipping workspace %s: %s", database.workspace_id, e)
            return

        stats.databases_scanned += 1
        try:
            records = self.builder.select_records(self.extractor.extract(database))
            for index, record in enumerate(records):
                if index < SAMPLE_RECORDS and is_debug_enabled(logger):
                    logger.debug(
                        "Sample item %d: source=%r, data type=%s, size=%d",
                        index,
                        record.key,
                        type(record.value).__name__,
                        record.size,
                    )
                self._process_record(record, projects, chats, stats)
        except Exception as e:
            stats.databases_failed += 1
            logger.error(
                "Error processing workspace %s: %s", database.workspace_id, e, exc_info=True
            )
        finally:
            try:
                self.extractor.close()
            except Exception as e:
                logger.warning("Could not close database %s: %s", database.db_path, e)

    def _process_record(
        self,
        record: CandidateRecord,
        projects: ProjectRegistry,
        chats: List[Chat],
        stats: ProcessingStats,
    ) -> None:
        stats.total_records += 1
        try:
            variant = self.classifier.classify(record.key, record.value)
            produced = self.builder.build(variant, record, projects, chats)
        except Exception as e:
            stats.invalid_records += 1
            logger.error("Error processing chat data %s: %s", record.key, e, exc_info=True)
            return

        if produced > 0:
            stats.valid_records += 1
        else:
            stats.invalid_records += 1

    def extract_workspace_real_name(self) -> Optional[str]:
        """Display name of the currently open workspace database, if any."""
        return self.extractor.extract_workspace_real_name()

    def save_processed_data(self, projects: List[Project], chats: List[Chat]) -> bool:
        """
        Persist Projects and Chats as a snapshot.

        Returns
        -------
        bool
            True if both snapshots were written
        """
        saved_projects = self.snapshot_storage.save_data(
            PROJECTS_KEY, [p.serialize() for p in projects]
        )
        saved_chats = self.snapshot_storage.save_data(CHATS_KEY, [c.serialize() for c in chats])
        if saved_projects and saved_chats:
            logger.info("Saved %d projects and %d chats", len(projects), len(chats))
            return True
        logger.error("Error saving processed data")
        return False

    def load_processed_data(self) -> ProcessingResult:
        """
        Load the last saved snapshot.

        Returns
        -------
        ProcessingResult
            Saved Projects and Chats; empty if nothing was saved or the
            snapshot could not be read
        """
        projects_data = self.snapshot_storage.get_data(PROJECTS_KEY, [])
        chats_data = self.snapshot_storage.get_data(CHATS_KEY, [])
        try:
            projects = [Project.deserialize(p) for p in projects_data or []]
            chats = [Chat.deserialize(c) for c in chats_data or []]
        except (KeyError, TypeError, ValueError) as e:
            logger.error("Error loading processed data: %s", e)
            return ProcessingResult()

        stats = ProcessingStats(chats=len(chats), projects=len(projects))
        return ProcessingResult(projects=projects, chats=chats, stats=stats)

    def clear_all_cached_data(self) -> None:
        """Remove saved snapshots and close every cached connection."""
        logger.info("Clearing all cached and stored data")
        self.snapshot_storage.remove_data(PROJECTS_KEY)
        self.snapshot_storage.remove_data(CHATS_KEY)
        self.reader.close_all()

    def refresh(
        self,
        force: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> ProcessingResult:
        """
        Rescan every workspace and save the result.

        Parameters
        ----------
        force : bool
            If True, clear saved snapshots and all cached queries first
        cancel_event : threading.Event, optional
            Passed through to process_chats()
        """
        if force:
            self.clear_all_cached_data()
        result = self.process_chats(cancel_event)
        self.save_processed_data(result.projects, result.chats)
        return result
