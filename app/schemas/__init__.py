from .auction import (AuctionCreate, AuctionListResponse, AuctionResponse, AuctionSnapshot,
                      AuctionStatusUpdate)
from .bid import (AutoBidCreate, AutoBidRecord, AutoBidResponse, BidCreate, BidDecision,
                  BidHistoryResponse, BidRecord, BidResponse, BidResult, PlaceBidResponse,
                  RejectionDetail)
from .countdown import RemainingTime
