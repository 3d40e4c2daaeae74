from .base import BaseProvider
from .apibay import ApiBayProvider
from .torrentscsv import TorrentsCsvProvider
from .ygg import YggProvider

__all__ = [
    "BaseProvider",
    "ApiBayProvider",
    "TorrentsCsvProvider",
    "YggProvider",
]
