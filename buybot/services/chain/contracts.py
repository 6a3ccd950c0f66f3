"""
Presale Contract Interface

Address, ABI and event topic for the presale contract on Ethereum mainnet.
"""

from typing import Any, Dict, List

from web3 import Web3


PRESALE_CONTRACT_ADDRESS = '0xC53fa85B734717CFd999343f6024165f0eC423b7'

PURCHASE_EVENT_NAME = 'TokensPurchased'

PURCHASE_EVENT_SIGNATURE = 'TokensPurchased(address,uint256,uint256,string,address)'

# keccak256 of the signature, used as topic0 in log filters
PURCHASE_EVENT_TOPIC = Web3.to_hex(Web3.keccak(text=PURCHASE_EVENT_SIGNATURE))


PRESALE_ABI: List[Dict[str, Any]] = [
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "buyer", "type": "address"},
            {"indexed": False, "name": "amount", "type": "uint256"},
            {"indexed": False, "name": "ethAmount", "type": "uint256"},
            {"indexed": False, "name": "paymentMethod", "type": "string"},
            {"indexed": True, "name": "referrer", "type": "address"},
        ],
        "name": PURCHASE_EVENT_NAME,
        "type": "event"
    },
]


# Token decimals by payment method; anything not listed is a 6-decimal stablecoin
TOKEN_DECIMALS = 18
PAYMENT_DECIMALS = {
    'ETH': 18,
}
STABLECOIN_DECIMALS = 6


def get_payment_decimals(payment_method: str) -> int:
    """Decimals of the amount paid with the given method"""
    return PAYMENT_DECIMALS.get(payment_method, STABLECOIN_DECIMALS)
