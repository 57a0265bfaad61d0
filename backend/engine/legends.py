"""Curated all-time Solana meme runners, shown as a static Legend set."""
from typing import List

from engine.models import Token

LEGENDS: List[Token] = [
    Token(
        address="DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263",
        symbol="BONK",
        name="Bonk",
        description="The first Solana dog coin, airdropped to the community after the FTX collapse.",
    ),
    Token(
        address="EKpQGSJtjMFqKZ9KQanSqYXRcF8fBopzLHYxdM65zcjm",
        symbol="WIF",
        name="dogwifhat",
        description="Literally a dog wif a hat.",
    ),
    Token(
        address="7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr",
        symbol="POPCAT",
        name="Popcat",
        description="The cat that pops.",
    ),
    Token(
        address="MEW1gQWJ3nEXg2qgERiKu7FAFj79PHvQVREQUzScPP5",
        symbol="MEW",
        name="cat in a dogs world",
        description="A cat in a dogs world.",
    ),
    Token(
        address="2qEHjDLDLbuBgRYvsxhc5D6uDWAivNFZGan56P1tpump",
        symbol="PNUT",
        name="Peanut the Squirrel",
        description="Justice for Peanut the squirrel.",
    ),
    Token(
        address="CzLSujWBLFsSjncfkh59rUFqvafWcY5tzedWJSuypump",
        symbol="GOAT",
        name="Goatseus Maximus",
        description="The AI-shilled coin that kicked off the agent meta.",
    ),
]
