import json

from relaygate.cli import main
from relaygate.keys import FileKeyProvider
from relaygate.records import OwnershipChangeRecord, PauseStateRecord
from relaygate.event_log import SqliteHashChainLog

from conftest import BOB, OWNER


def write_json(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


def test_keygen_writes_usable_keys(tmp_path, capsys):
    key_path = tmp_path / "secrets" / "key.json"
    trust_path = tmp_path / "trust" / "trust.json"

    assert main(["keygen", "--signing-key", str(key_path), "--trust-store", str(trust_path), "--kid", "k1"]) == 0

    provider = FileKeyProvider(str(key_path), str(trust_path))
    assert provider.get_kid() == "k1"
    assert "k1" in provider.get_trust_store()["relay_log_keys"]
    assert "Trust store written" in capsys.readouterr().out


def test_verify_and_state_on_export(tmp_path, keys, capsys):
    event_log = SqliteHashChainLog(str(tmp_path / "cli.db"), keys)
    event_log.append(PauseStateRecord(True))
    event_log.append(OwnershipChangeRecord(OWNER, BOB))
    export = write_json(tmp_path / "export.json", event_log.export())
    event_log.close()
    trust = write_json(tmp_path / "trust.json", keys.get_trust_store())

    assert main(["verify", "--log", export, "--trust-store", trust]) == 0
    assert "VALID: 2 entries" in capsys.readouterr().out

    assert main(["state", "--log", export, "--initial-owner", OWNER]) == 0
    assert json.loads(capsys.readouterr().out) == {"owner": BOB, "paused": True, "circuit": "SUSPENDED"}

    assert main(["state", "--log", export, "--initial-owner", BOB]) == 1


def test_verify_reports_tampering(tmp_path, keys, capsys):
    event_log = SqliteHashChainLog(str(tmp_path / "cli.db"), keys)
    event_log.append(PauseStateRecord(True))
    entries = event_log.export()
    event_log.close()
    entries[0]["record_json"] = json.dumps({"record_type": "PauseStateChanged", "is_paused": False})

    code = main(["verify", "--log", write_json(tmp_path / "e.json", entries),
                 "--trust-store", write_json(tmp_path / "t.json", keys.get_trust_store())])
    assert code == 1
    assert "INVALID at seq 1" in capsys.readouterr().out


def test_state_accepts_memory_export(tmp_path, capsys):
    export = write_json(tmp_path / "mem.json", [
        {"seq": 1, "record": {"record_type": "PauseStateChanged", "is_paused": True}},
    ])
    assert main(["state", "--log", export, "--initial-owner", OWNER]) == 0
    assert json.loads(capsys.readouterr().out)["paused"] is True


def test_no_command_prints_help(capsys):
    assert main([]) == 1
    assert "usage" in capsys.readouterr().out
