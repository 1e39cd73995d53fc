"""ContractUtility: Web3 initialization and contract ABI loading."""

import json
from pathlib import Path

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3, Web3
from web3.contract import AsyncContract
from web3.middleware import SignAndSendRawMiddlewareBuilder


class ContractUtility:
    """Utility for Web3 connection and contract ABI loading.

    :ivar rpc_url: Network RPC URL.
    :ivar w3: AsyncWeb3 instance, signing with the oracle key if one is set.
    :ivar account: Oracle signing account, or None for read-only use.
    """

    def __init__(self, rpc_url: str, private_key: str | None = None) -> None:
        """Initialize the contract utility.

        :param rpc_url: HTTP(S) RPC endpoint of the target chain.
        :param private_key: Optional 0x-prefixed oracle private key.
        :raises ValueError: If the private key is not 0x-prefixed.
        """
        self.rpc_url = rpc_url
        self.w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
        self.account: LocalAccount | None = None

        if private_key:
            if not private_key.startswith("0x"):
                raise ValueError("ORACLE_PRIVATE_KEY must start with 0x")
            self.account = Account.from_key(private_key)
            # Transactions sent with "from" set to this account are signed locally
            self.w3.middleware_onion.inject(
                SignAndSendRawMiddlewareBuilder.build(self.account), layer=0
            )
            self.w3.eth.default_account = self.account.address

    @property
    def account_address(self) -> str | None:
        """Checksummed address of the signing account, if any."""
        return self.account.address if self.account else None

    def get_market_factory(self, address: str) -> AsyncContract:
        """Create a MarketFactory contract handle.

        :param address: 0x-prefixed contract address.
        :returns: AsyncContract bound to this utility's connection.
        :raises ValueError: If the address is not 0x-prefixed.
        """
        if not address.startswith("0x"):
            raise ValueError("MARKET_FACTORY_ADDRESS must start with 0x")
        return self.w3.eth.contract(
            address=Web3.to_checksum_address(address),
            abi=self.get_abi("MarketFactory"),
        )

    @staticmethod
    def get_abi(contract_name: str) -> list:
        """Fetch the ABI of a contract from the abis folder.

        :param contract_name: Name of the contract (e.g., "MarketFactory").
        :returns: ABI as a list of entries.
        """
        abi_path = (
            Path(__file__).parent.parent / "abis" / f"{contract_name}.json"
        ).resolve()

        with open(abi_path, "r") as file:
            contract_data = json.load(file)

        return contract_data["abi"]
