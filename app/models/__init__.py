from .auction import Auction
from .bid import Bid
from .auto_bid import AutoBid
