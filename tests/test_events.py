"""
Unit Tests for purchase event decoding
"""

from decimal import Decimal

import pytest
from eth_utils import to_checksum_address

from buybot.services.chain.contracts import get_payment_decimals
from buybot.services.chain.errors import ErrorCategory, EventDecodeError
from buybot.services.chain.events import decode_purchase, scale_amount


RAW_BUYER = "0x742d35cc6634c0532925a3b844bc9e7595f0beb1"
RAW_REFERRER = "0x" + "0" * 40


def make_event_data(**overrides):
    """Decoded EventData as produced by web3's process_log"""
    args = {
        'buyer': RAW_BUYER,
        'amount': 10_000 * 10**18,
        'ethAmount': 5 * 10**17,
        'paymentMethod': 'ETH',
        'referrer': RAW_REFERRER,
    }
    args.update(overrides.pop('args', {}))

    data = {
        'event': 'TokensPurchased',
        'args': args,
        'transactionHash': '0x' + 'ab' * 32,
        'blockNumber': 19000000,
        'logIndex': 3,
    }
    data.update(overrides)
    return data


class TestScaleAmount:

    def test_eighteen_decimals(self):
        assert scale_amount(15 * 10**17, 18) == Decimal('1.5')

    def test_six_decimals(self):
        assert scale_amount(80_000_000, 6) == Decimal('80')

    def test_payment_decimals(self):
        assert get_payment_decimals('ETH') == 18
        assert get_payment_decimals('USDT') == 6
        assert get_payment_decimals('USDC') == 6


class TestDecodePurchase:
    """Test decode_purchase"""

    def test_eth_purchase(self):
        event = decode_purchase(make_event_data())

        assert event.tx_hash == '0x' + 'ab' * 32
        assert event.block_number == 19000000
        assert event.log_index == 3
        assert event.buyer == to_checksum_address(RAW_BUYER)
        assert event.base_amount == Decimal('10000')
        assert event.bonus_amount == Decimal('20000')
        assert event.total_amount == Decimal('30000')
        assert event.paid_amount == Decimal('0.5')
        assert event.is_eth_payment is True

    def test_stablecoin_purchase(self):
        data = make_event_data(args={'ethAmount': 80_000_000, 'paymentMethod': 'USDT'})

        event = decode_purchase(data)

        assert event.paid_amount == Decimal('80')
        assert event.payment_method == 'USDT'
        assert event.is_eth_payment is False

    def test_bonus_multiplier(self):
        event = decode_purchase(make_event_data(), bonus_multiplier=1)

        assert event.bonus_amount == event.base_amount

    def test_bytes_transaction_hash(self):
        data = make_event_data(transactionHash=bytes.fromhex('cd' * 32))

        event = decode_purchase(data)

        assert event.tx_hash == '0x' + 'cd' * 32

    def test_missing_argument(self):
        data = make_event_data()
        del data['args']['amount']

        with pytest.raises(EventDecodeError) as exc_info:
            decode_purchase(data)

        assert exc_info.value.category == ErrorCategory.DECODE
        assert exc_info.value.is_retryable() is False

    def test_invalid_address(self):
        with pytest.raises(EventDecodeError):
            decode_purchase(make_event_data(args={'buyer': 'not-an-address'}))

    def test_invalid_block_number(self):
        with pytest.raises(EventDecodeError):
            decode_purchase(make_event_data(blockNumber=0))

    def test_empty_transaction_hash(self):
        with pytest.raises(EventDecodeError):
            decode_purchase(make_event_data(transactionHash=''))

    def test_negative_amount(self):
        with pytest.raises(EventDecodeError):
            decode_purchase(make_event_data(args={'amount': -1}))

    def test_to_dict(self):
        data = decode_purchase(make_event_data()).to_dict()

        assert data['base_amount'] == '10000'
        assert data['total_amount'] == '30000'
        assert isinstance(data['paid_amount'], str)
