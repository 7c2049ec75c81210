from abc import ABC, abstractmethod

from .models import SendParams


class TransactionSigner(ABC):
    """
    External signing capability.

    walletcore never holds keys. The wallet layer implements this and hands
    back a raw signed transaction; broadcasting goes through the chain
    connection.
    """

    @abstractmethod
    async def sign_transaction(self, params: SendParams, chain_id: int) -> str:
        """Return the 0x-prefixed raw signed transaction for ``params``.

        Raise if the user rejects the request or the signer is unavailable.
        """
        pass
