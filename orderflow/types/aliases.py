# -------- Aliases (clarify intent) --------
ClientId = int  # uint32, allocator-assigned
MarketId = str  # e.g., "ETH-USD", "BTC-USD"
BlockHeight = int
UnixSeconds = int
Quantums = int  # integer asset amount (amount * 10**decimals)
Address = str  # bech32 wallet address
