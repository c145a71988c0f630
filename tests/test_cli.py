"""Tests for the multisend command line."""

import json
import os
from unittest.mock import MagicMock, patch

import pytest

import cli
from multisend.registry import ConfigurationRegistry
from multisend.subtensor import SubtensorLedger


ALICE = "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY"
BOB = "5FHneW46xGXgs5mUiveU4sbTyGBzmstUspZC92UhjJM694ty"
BANK = "5HGjWAeFDfFCWPsjFQdVV2Msvz2XtMktvgocEZcCj68kUMaw"

WALLETS = {"alice": ALICE, "bob": BOB}


@pytest.fixture(autouse=True)
def workdir(monkeypatch, tmp_path):
    monkeypatch.setattr(os, "environ", dict(os.environ))
    for name in ("MULTISEND_OWNER", "MULTISEND_NETWORK", "MULTISEND_REGISTRY",
                 "MULTISEND_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "_wallet_address", lambda name: WALLETS[name])
    return tmp_path


def run(*argv):
    return cli.main(["--registry", "registry.json", *argv])


class TestConfigurationCommands:
    def test_create_and_show(self, workdir, capsys):
        assert run("create", "--wallet", "alice", "--bank", BANK, "--fee", "10") == 0
        assert run("show", "--owner", ALICE) == 0

        out = capsys.readouterr().out
        assert "Fee: 10%" in out
        assert f"Bank account: {BANK}" in out
        assert ConfigurationRegistry.load(workdir / "registry.json").get_admin(ALICE) == ALICE

    def test_create_twice(self, capsys):
        run("create", "--wallet", "alice", "--bank", BANK, "--fee", "10")
        assert run("create", "--wallet", "alice", "--bank", BOB, "--fee", "5") == 1
        assert "duplicate_resource" in capsys.readouterr().out

    def test_update_requires_admin(self, workdir, capsys):
        run("create", "--wallet", "alice", "--bank", BANK, "--fee", "10")

        assert run("update-fee", "--wallet", "bob", "--fee", "50", "--owner", ALICE) == 1
        assert "not_authorized" in capsys.readouterr().out
        assert ConfigurationRegistry.load(workdir / "registry.json").get_fee(ALICE) == 10

    def test_admin_handover(self, workdir):
        run("create", "--wallet", "alice", "--bank", BANK, "--fee", "10")

        assert run("update-admin", "--wallet", "alice", "--admin", BOB, "--owner", ALICE) == 0
        assert run("update-bank", "--wallet", "bob", "--bank", ALICE, "--owner", ALICE) == 0
        assert run("update-fee", "--wallet", "bob", "--fee", "15", "--owner", ALICE) == 0
        assert run("update-fee", "--wallet", "alice", "--fee", "1", "--owner", ALICE) == 1

        registry = ConfigurationRegistry.load(workdir / "registry.json")
        assert registry.get_fee(ALICE) == 15
        assert registry.get_bank_account(ALICE) == ALICE

    def test_owner_from_environment(self, capsys):
        run("create", "--wallet", "alice", "--bank", BANK, "--fee", "3")
        os.environ["MULTISEND_OWNER"] = ALICE
        assert run("show") == 0
        assert "Fee: 3%" in capsys.readouterr().out

    def test_missing_owner(self, capsys):
        assert run("show") == 1
        assert "MULTISEND_OWNER" in capsys.readouterr().out

    def test_missing_record(self, capsys):
        assert run("show", "--owner", ALICE) == 1
        assert "record_not_found" in capsys.readouterr().out

    def test_corrupt_registry(self, workdir, capsys):
        (workdir / "registry.json").write_text("{\"truncated\": ")
        assert run("show", "--owner", ALICE) == 1
        assert "registry_corrupt" in capsys.readouterr().out


class TestRecipientFiles:
    @pytest.mark.parametrize("fmt", ["csv", "json"])
    def test_template_validates(self, workdir, fmt):
        output = f"recipients.{fmt}"
        assert cli.main(["generate-template", "--output", output, "--format", fmt,
                         "--count", "7"]) == 0
        assert cli.main(["validate", "--file", output]) == 0

    def test_validate_reports_errors(self, workdir, capsys):
        (workdir / "bad.csv").write_text("address,amount\nnope,1\n")
        assert cli.main(["validate", "--file", "bad.csv"]) == 1
        assert "Invalid ss58" in capsys.readouterr().out


class TestSend:
    @pytest.fixture
    def subtensor(self):
        sub = MagicMock()
        sub.get_balance.return_value = MagicMock(rao=10**10)
        sub.sign_and_send_extrinsic.return_value = MagicMock(
            success=True, extrinsic_hash="0xabc"
        )
        sub.get_block_hash.return_value = "0xblock"
        return sub

    @pytest.fixture
    def connect(self, subtensor):
        wallet = MagicMock()
        wallet.coldkeypub.ss58_address = ALICE

        def fake_connect(wallet_name, network="finney", unlock=True, **kwargs):
            return SubtensorLedger(subtensor, wallet, **kwargs)

        with patch.object(cli.SubtensorLedger, "connect", side_effect=fake_connect) as m:
            yield m

    @pytest.fixture
    def recipients_file(self, workdir):
        (workdir / "r.json").write_text(json.dumps([
            {"address": BOB, "amount": 2},
            {"address": BANK, "amount": 1},
        ]))
        run("create", "--wallet", "alice", "--bank", BANK, "--fee", "10")
        return "r.json"

    def test_send(self, connect, subtensor, recipients_file, capsys):
        with patch("multisend.subtensor.Balances"):
            code = run("send", "--wallet", "alice", "--file", recipients_file,
                       "--owner", ALICE, "--yes", "--network", "test")

        assert code == 0
        out = capsys.readouterr().out
        assert "SUCCESS" in out
        assert "Fee (10%): 300000000 ->" in out
        assert "Extrinsic hash: 0xabc" in out
        subtensor.sign_and_send_extrinsic.assert_called_once()
        assert connect.call_args.kwargs["network"] == "test"

    def test_dry_run(self, connect, subtensor, recipients_file, capsys):
        code = run("send", "--wallet", "alice", "--file", recipients_file,
                   "--owner", ALICE, "--dry-run")

        assert code == 0
        assert "Fee Estimate" in capsys.readouterr().out
        subtensor.sign_and_send_extrinsic.assert_not_called()
        assert connect.call_args.kwargs["unlock"] is False

    def test_insufficient_funds(self, connect, subtensor, recipients_file, capsys):
        subtensor.get_balance.return_value = MagicMock(rao=100)

        code = run("send", "--wallet", "alice", "--file", recipients_file,
                   "--owner", ALICE, "--yes")

        assert code == 1
        assert "insufficient_funds" in capsys.readouterr().out
        subtensor.sign_and_send_extrinsic.assert_not_called()

    def test_non_finite_amount_rejected(self, connect, subtensor, workdir, capsys):
        (workdir / "nan.csv").write_text(f"address,amount\n{BOB},nan\n")
        run("create", "--wallet", "alice", "--bank", BANK, "--fee", "10")

        code = run("send", "--wallet", "alice", "--file", "nan.csv", "--owner", ALICE, "--yes")

        assert code == 1
        assert "finite number" in capsys.readouterr().out
        connect.assert_not_called()

    def test_estimate(self, connect, subtensor, recipients_file, capsys):
        code = run("estimate", "--wallet", "alice", "--file", recipients_file,
                   "--owner", ALICE)
        assert code == 0
        assert "Total cost: 3300000000" in capsys.readouterr().out
