import pytest
from fastapi.testclient import TestClient

from relaygate.config import Settings
from relaygate.event_log import InMemoryEventLog, SqliteHashChainLog
from relaygate.keys import EphemeralKeyProvider, generate_key_files
from relaygate.main import create_app
from relaygate.relay import AccessControlledRelay

OWNER = "0x" + "a" * 40
BOB = "0x" + "b" * 40
CAROL = "0x" + "c" * 40
ZERO = "0x" + "0" * 40


@pytest.fixture
def log():
    return InMemoryEventLog()


@pytest.fixture
def relay(log):
    return AccessControlledRelay(OWNER, log)


@pytest.fixture
def keys():
    return EphemeralKeyProvider(kid="test-log-key")


@pytest.fixture
def sqlite_log(tmp_path, keys):
    event_log = SqliteHashChainLog(str(tmp_path / "relaygate.db"), keys)
    yield event_log
    event_log.close()


@pytest.fixture
def settings(tmp_path):
    signing_key = str(tmp_path / "secrets" / "signing_key.json")
    trust_store = str(tmp_path / "trust" / "trust_store.json")
    generate_key_files(signing_key, trust_store, kid="test-file-key")
    return Settings(
        initial_owner=OWNER,
        event_log_backend="sqlite_hash_chain",
        db_path=str(tmp_path / "app.db"),
        signer="file",
        signing_key_path=signing_key,
        trust_store_path=trust_store,
        relay_rpm=1000,
    )


@pytest.fixture
def client(settings, keys):
    app = create_app(settings=settings, keys=keys, configure_logs=False)
    with TestClient(app) as c:
        yield c


def as_caller(identity):
    return {"X-Caller-Identity": identity}
