import json

import pytest

from stubs import BUYER, ITEM_TYPE, ROYALTY_RULE, SELLER, StubChain, StubSigner, addr, make_config

from sui_kiosk import cli
from sui_kiosk.config import ConfigurationError
from sui_kiosk.rpc_client import RPCTransportError
from sui_kiosk.workflows import KioskWorkflows

ITEM = addr(0x100)
SELLER_KIOSK = addr(0x200)
BUYER_KIOSK = addr(0x300)


@pytest.fixture
def chain() -> StubChain:
    chain = StubChain()
    chain.add_kiosk(SELLER_KIOSK, SELLER, profits=1_500_000_000)
    chain.place(SELLER_KIOSK, ITEM, addr(0x101))
    chain.list_item(SELLER_KIOSK, ITEM, 2_000_000_000, addr(0x102))
    chain.add_kiosk(BUYER_KIOSK, BUYER)
    chain.add_cap(BUYER, addr(0x301), BUYER_KIOSK)
    chain.add_policy(ITEM_TYPE, addr(0xA1), [ROYALTY_RULE], balance=3)
    return chain


@pytest.fixture
def workflows(chain: StubChain, monkeypatch: pytest.MonkeyPatch) -> KioskWorkflows:
    flows = KioskWorkflows(chain, StubSigner(BUYER), make_config())
    monkeypatch.setattr(cli, "_workflows_from_args", lambda args: flows)
    return flows


def run(argv, capsys) -> tuple[int, str, str]:
    try:
        cli.main(argv)
        code = 0
    except SystemExit as exc:
        code = exc.code or 0
    captured = capsys.readouterr()
    return code, captured.out, captured.err


def test_format_amount_trims_zeros() -> None:
    assert cli.format_amount(1_500_000_000) == "1.5"
    assert cli.format_amount(2_000_000_000) == "2"
    assert cli.format_amount(1) == "0.000000001"
    assert cli.format_amount(0) == "0"


def test_format_type_shortens_addresses_and_uses_aliases() -> None:
    assert cli.format_type(ITEM_TYPE) == "0xabab…abab::nft::Nft"
    assert cli.format_type(ITEM_TYPE, make_config(known_types={"nft": ITEM_TYPE})) == "nft"


def test_purchase_executes_and_prints_gas(workflows, capsys) -> None:
    code, out, _ = run(["--dry-run", "purchase", ITEM], capsys)

    assert code == 0
    bundle, dry_run = workflows.signer.executed[0]
    assert dry_run is True
    assert "0x2::transfer_policy::confirm_request" in bundle.commands
    assert "Transaction: Dg5tXq" in out
    assert "0.0025 SUI (2500000 MIST)" in out


def test_purchase_json_output(workflows, capsys) -> None:
    code, out, _ = run(["--json", "purchase", ITEM, "--kiosk", SELLER_KIOSK], capsys)

    assert code == 0
    payload = json.loads(out)
    assert payload["digest"] == "Dg5tXq"
    assert payload["gasUsed"] == 2_500_000
    assert payload["objectChanges"][0]["change_type"] == "mutated"


def test_invalid_item_id_exits_with_usage_code(workflows, capsys) -> None:
    code, _, err = run(["purchase", "0x1"], capsys)

    assert code == 2
    assert "error: Invalid Item ID" in err
    assert workflows.signer.executed == []


def test_missing_kiosk_exits_with_resolution_code(chain, monkeypatch, capsys) -> None:
    flows = KioskWorkflows(chain, StubSigner(addr(0xDEAD)), make_config())
    monkeypatch.setattr(cli, "_workflows_from_args", lambda args: flows)

    code, _, err = run(["withdraw"], capsys)

    assert code == 1
    assert "No Kiosk found" in err


def test_failed_transaction_exits_with_submission_code(workflows, capsys) -> None:
    workflows.signer.payload = {
        "digest": "BadTx",
        "effects": {"status": {"status": "failure", "error": "MoveAbort"}},
    }

    code, _, err = run(["withdraw"], capsys)

    assert code == 3
    assert "MoveAbort" in err


def test_configuration_error_exits_with_usage_code(monkeypatch, capsys) -> None:
    def broken(_args):
        raise ConfigurationError("Unknown network 'x'")

    monkeypatch.setattr(cli, "_workflows_from_args", broken)

    code, _, err = run(["withdraw"], capsys)

    assert code == 2
    assert "Unknown network" in err


def test_transport_error_exits_with_one(workflows, monkeypatch, capsys) -> None:
    def unreachable():
        raise RPCTransportError("RPC connection failed")

    monkeypatch.setattr(workflows, "publishers", unreachable)

    code, _, err = run(["publisher"], capsys)

    assert code == 1
    assert "RPC connection failed" in err


def test_contents_prints_listed_items_last(workflows, capsys) -> None:
    code, out, _ = run(["contents", "--id", SELLER_KIOSK], capsys)

    assert code == 0
    assert f"- Kiosk ID:    {SELLER_KIOSK}" in out
    assert "- Profits:     1.5 SUI" in out
    assert ITEM in out
    assert out.splitlines()[-1].rstrip().endswith("| 2")


def test_policy_lists_rules(workflows, capsys) -> None:
    code, out, _ = run(["--json", "policy", ITEM_TYPE], capsys)

    assert code == 0
    rows = json.loads(out)
    assert rows == [
        {"id": addr(0xA1), "owner": "Shared", "rules": "royalty_rule::Rule", "balance": 3}
    ]


def test_policy_without_results_says_so(workflows, capsys) -> None:
    code, out, _ = run(["policy", "0x2::other::Thing"], capsys)

    assert code == 0
    assert "No transfer policy found for type 0x2::other::Thing" in out


def test_search_prints_open_listings(workflows, chain, capsys) -> None:
    chain.add_event(
        f"0x2::kiosk::ItemListed<{ITEM_TYPE}>", {"id": ITEM, "kiosk": SELLER_KIOSK, "price": "77"}, 10
    )

    code, out, _ = run(["--json", "search", ITEM_TYPE], capsys)

    assert code == 0
    assert json.loads(out) == [{"objectId": ITEM, "kiosk": "0x0000…0200", "price": 77}]


def test_inventory_only_display_filters_rows(workflows, capsys) -> None:
    code, out, _ = run(["inventory", "--only-display"], capsys)

    assert code == 0
    assert f"- Owner {BUYER}" in out
    assert "(none)" in out


def test_new_refuses_when_kiosk_exists(workflows, capsys) -> None:
    code, _, err = run(["new"], capsys)

    assert code == 1
    assert f"Kiosk {BUYER_KIOSK} already exists" in err


def test_missing_config_file_exits_with_usage_code(tmp_path, monkeypatch, capsys) -> None:
    monkeypatch.setattr("sui_kiosk.config._CONFIG_PATH_OVERRIDE", None)

    code, _, err = run(["--config", str(tmp_path / "absent.yaml"), "withdraw"], capsys)

    assert code == 2
    assert "Config file not found" in err


def test_execution_output_uses_type_aliases(chain, monkeypatch, capsys) -> None:
    config = make_config(known_types={"sui-coin": "0x2::coin::Coin<0x2::sui::SUI>"})
    flows = KioskWorkflows(chain, StubSigner(BUYER), config)
    monkeypatch.setattr(cli, "_workflows_from_args", lambda args: flows)

    code, out, _ = run(["withdraw"], capsys)

    assert code == 0
    assert "sui-coin" in out
    assert "0x2::coin::Coin<0x2::sui::SUI>" not in out
