"""Data models for the profiler module."""

from dataclasses import dataclass

# Wallet behind the documented 2024 Venezuelan election accumulation
KNOWN_INSIDER_ADDRESS = "0x31a56e9E690c621eD21De08Cb559e9524Cdb8eD9"


@dataclass(frozen=True)
class WalletStats:
    """Trading history summary for a wallet.

    Attributes:
        total_trades: Number of trades the wallet has made.
        win_rate: Fraction of positions in profit (0.0 to 1.0).
        account_age_days: Days since the wallet's first trade.
        is_whale: True if the wallet is a top holder of the traded market.
    """

    total_trades: int
    win_rate: float
    account_age_days: float
    is_whale: bool = False

    @property
    def is_fresh(self) -> bool:
        """Return True if the wallet started trading less than a week ago."""
        return self.account_age_days < 7

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "total_trades": self.total_trades,
            "win_rate": self.win_rate,
            "account_age_days": self.account_age_days,
            "is_whale": self.is_whale,
        }
