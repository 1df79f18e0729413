from .base import AuctionStore, AuctionUpdate, Mutation
from .memory import InMemoryAuctionStore
from .database import DatabaseAuctionStore
