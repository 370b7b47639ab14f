import pytest

from stubs import BUYER, SELLER, StubChain, addr

from sui_kiosk.capability import CapabilityStore
from sui_kiosk.errors import NoKiosk


def test_find_capability_returns_first_cap() -> None:
    chain = StubChain()
    chain.add_cap(BUYER, addr(0xC1), addr(0x201))
    chain.add_cap(BUYER, addr(0xC2), addr(0x202))
    chain.add_cap(SELLER, addr(0xC3), addr(0x203))

    cap = CapabilityStore(chain).find_capability(BUYER)

    assert cap.id == addr(0xC1)
    assert cap.kiosk_id == addr(0x201)
    assert chain.reads("get_owned_objects") == [(BUYER, "0x2::kiosk::KioskOwnerCap")]


def test_no_cap_raises_no_kiosk_with_hint() -> None:
    with pytest.raises(NoKiosk, match="use `new` to create one") as excinfo:
        CapabilityStore(StubChain()).find_capability(BUYER)

    assert excinfo.value.subject == BUYER


def test_list_capabilities_only_returns_owner_caps() -> None:
    chain = StubChain()
    chain.give(BUYER, addr(0x55))
    chain.add_cap(BUYER, addr(0xC1), addr(0x201))

    caps = CapabilityStore(chain).list_capabilities(BUYER)

    assert [cap.id for cap in caps] == [addr(0xC1)]
