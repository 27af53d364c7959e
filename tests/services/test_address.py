import pytest

from checkthecrowd.core.errors import InvalidAddress
from checkthecrowd.services.address import CHAINS, AddressCodec

from tests.conftest import ETH_TOKEN, SOL_TOKEN


@pytest.mark.parametrize("chain", ["eth", "bsc"])
def test_evm_addresses_are_lowercased(chain: str) -> None:
    assert AddressCodec.normalize(chain, f"  {ETH_TOKEN} ") == ETH_TOKEN.lower()


def test_base58_addresses_keep_their_case() -> None:
    assert AddressCodec.normalize("sol", SOL_TOKEN) == SOL_TOKEN


@pytest.mark.parametrize(
    ("chain", "address"),
    [
        ("eth", "0x1234"),
        ("eth", "dAC17F958D2ee523a2206206994597C13D831ec7aa"),
        ("bsc", "0xZZC17F958D2ee523a2206206994597C13D831ec7"),
        ("sol", "0OIl" + SOL_TOKEN[4:]),
        ("sol", "abc"),
        ("sol", ETH_TOKEN),
    ],
)
def test_malformed_addresses_raise(chain: str, address: str) -> None:
    with pytest.raises(InvalidAddress):
        AddressCodec.normalize(chain, address)


def test_unknown_chain_is_rejected() -> None:
    assert "btc" not in CHAINS
    with pytest.raises(InvalidAddress) as exc_info:
        AddressCodec.normalize("btc", ETH_TOKEN)
    assert "eth, bsc, sol" in exc_info.value.reason


def test_wallet_family_is_inferred_from_prefix() -> None:
    assert AddressCodec.wallet_family(ETH_TOKEN) == "evm"
    assert AddressCodec.wallet_family("0X" + ETH_TOKEN[2:]) == "evm"
    assert AddressCodec.wallet_family(SOL_TOKEN) == "base58"


def test_wallet_key_is_shared_by_case_variants() -> None:
    key = AddressCodec.wallet_key(ETH_TOKEN)
    assert key == AddressCodec.wallet_key(ETH_TOKEN.lower())
    assert key == AddressCodec.wallet_key(ETH_TOKEN.upper().replace("0X", "0x"))
    assert AddressCodec.is_wallet_key(key)
    assert ETH_TOKEN.lower() not in key


def test_wallet_keys_differ_between_wallets() -> None:
    assert AddressCodec.wallet_key(ETH_TOKEN) != AddressCodec.wallet_key(SOL_TOKEN)


def test_is_valid_wallet() -> None:
    assert AddressCodec.is_valid_wallet(ETH_TOKEN)
    assert AddressCodec.is_valid_wallet(SOL_TOKEN)
    assert not AddressCodec.is_valid_wallet("0xnothex")
    assert not AddressCodec.is_valid_wallet("")


def test_wallet_key_rejects_malformed_wallet() -> None:
    with pytest.raises(InvalidAddress):
        AddressCodec.wallet_key("not-a-wallet")


def test_is_wallet_key_shape() -> None:
    assert not AddressCodec.is_wallet_key("A" * 64)
    assert not AddressCodec.is_wallet_key("a" * 63)
