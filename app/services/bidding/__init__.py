from .auction_service import AuctionService
from .bidding_service import BiddingService
from .clock import EXPIRED, countdown, format_time_remaining, remaining_time, utc_now
from .exceptions import (AuctionEnded, AuctionError, AuctionNotActive, AuctionNotFound,
                         InvalidTransition, StaleBid)
from .ledger import AuctionLedger, BidHistory
from .validator import evaluate_bid, is_money_amount, minimum_next_bid, resolve_min_increment
