import shutil
import unittest
from pathlib import Path
from uuid import uuid4

from tripsync.storage import LedgerStore, MessageLedger, SessionStore

PROJECT_ROOT = Path(__file__).resolve().parents[2]


class LedgerStoreTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp_dir = PROJECT_ROOT / ".test-artifacts" / f"{self.__class__.__name__.lower()}-{uuid4().hex}"
        self._tmp_dir.mkdir(parents=True, exist_ok=True)
        self._store = LedgerStore(str(self._tmp_dir / "ledger.db"))
        self._sessions = SessionStore(self._store)
        self._ledger = MessageLedger(self._store, self._sessions)

    def tearDown(self) -> None:
        self._store.close()
        shutil.rmtree(self._tmp_dir, ignore_errors=True)
