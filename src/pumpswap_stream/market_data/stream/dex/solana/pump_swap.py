"""
PumpSwap AMM decoder.

Parses PumpSwap create_pool / buy / sell instructions and confirms them
against the self-CPI events the program emits. Instruction arguments only
carry the user's limits (max quote in, min quote out); the event carries
what actually executed, so a trade is first drafted from the instruction and
then overwritten by the event when one is found.
"""

import logging
from typing import Optional, Sequence, Union

from construct import ConstructError

from pumpswap_stream.core.events import CreatePoolEvent, TradeEvent, TradeSide, now_ms
from .envelope import CompiledInstruction, TransactionEnvelope
from .layouts import (
    AMM_MIN_ACCOUNTS,
    BUY_ARGS,
    BUY_EVENT_DISCRIMINATOR,
    BUY_IX_DISCRIMINATOR,
    CREATE_POOL_ARGS,
    CREATE_POOL_EVENT,
    CREATE_POOL_EVENT_DISCRIMINATOR,
    CREATE_POOL_IX_DISCRIMINATOR,
    SELL_ARGS,
    SELL_EVENT_DISCRIMINATOR,
    SELL_IX_DISCRIMINATOR,
    TRADE_EVENT,
)

logger = logging.getLogger(__name__)

PUMP_SWAP_PROGRAM_ID = "pAMMBay6oceH9fJKBRHGP5D4bD4sWpmSwMn52FMfXEA"

PumpSwapEvent = Union[CreatePoolEvent, TradeEvent]


class PumpSwapDecoder:
    """
    Decoder for PumpSwap AMM transactions.

    Only the first top-level PumpSwap instruction with a known discriminator
    is decoded; later instructions in the same transaction are ignored.

    Usage:
        decoder = PumpSwapDecoder()
        event = decoder.decode(envelope)
        if isinstance(event, TradeEvent) and event.confirmed:
            ...
    """

    def __init__(self, program_id: str = PUMP_SWAP_PROGRAM_ID):
        self.program_id = program_id
        self.parse_success_count = 0
        self.parse_failure_count = 0
        self.unconfirmed_count = 0

    def decode(self, envelope: TransactionEnvelope) -> Optional[PumpSwapEvent]:
        """
        Decode the first PumpSwap instruction of a transaction.

        Args:
            envelope: Transaction to inspect

        Returns:
            CreatePoolEvent or TradeEvent, or None if nothing decodable
        """
        try:
            for index, ix in envelope.instructions_for(self.program_id):
                if len(ix.data) < 8:
                    continue

                discriminator = ix.data[:8]
                if discriminator == BUY_IX_DISCRIMINATOR:
                    event = self._decode_trade(envelope, index, ix, TradeSide.BUY)
                elif discriminator == SELL_IX_DISCRIMINATOR:
                    event = self._decode_trade(envelope, index, ix, TradeSide.SELL)
                elif discriminator == CREATE_POOL_IX_DISCRIMINATOR:
                    event = self._decode_create_pool(envelope, index, ix)
                else:
                    continue

                if event is None:
                    self.parse_failure_count += 1
                else:
                    self.parse_success_count += 1
                return event

        except Exception as e:
            logger.debug(f"PumpSwap decode error: {e}", extra={'slot': envelope.slot})
            self.parse_failure_count += 1

        return None

    # ========================================================================
    # Instruction decoding
    # ========================================================================

    def _decode_create_pool(
        self,
        envelope: TransactionEnvelope,
        index: int,
        ix: CompiledInstruction,
    ) -> Optional[CreatePoolEvent]:
        args_data = ix.data[8:]
        if len(args_data) < CREATE_POOL_ARGS.sizeof() or len(ix.accounts) < AMM_MIN_ACCOUNTS:
            logger.debug(
                f"CreatePool instruction too short: {len(args_data)} arg bytes, {len(ix.accounts)} accounts",
                extra={'signature': envelope.signature_b58},
            )
            return None

        pool = envelope.account(ix, 0)
        creator = envelope.account(ix, 2)
        base_mint = envelope.account(ix, 3)
        quote_mint = envelope.account(ix, 4)
        if None in (pool, creator, base_mint, quote_mint):
            logger.debug("Instruction account index out of range", extra={'signature': envelope.signature_b58})
            return None

        args = CREATE_POOL_ARGS.parse(args_data)
        event = CreatePoolEvent(
            signature=envelope.signature_b58,
            slot=envelope.slot,
            timestamp=now_ms(),
            pool=pool,
            creator=creator,
            base_mint=base_mint,
            quote_mint=quote_mint,
            base_amount=args.base_amount_in,
            quote_amount=args.quote_amount_in,
        )

        parsed = self._find_event(envelope.inner_for(index), CREATE_POOL_EVENT_DISCRIMINATOR, CREATE_POOL_EVENT)
        if parsed is not None:
            event.base_decimals = parsed.base_mint_decimals
            event.quote_decimals = parsed.quote_mint_decimals

        return event

    def _decode_trade(
        self,
        envelope: TransactionEnvelope,
        index: int,
        ix: CompiledInstruction,
        side: TradeSide,
    ) -> Optional[TradeEvent]:
        args_struct = BUY_ARGS if side == TradeSide.BUY else SELL_ARGS
        args_data = ix.data[8:]
        if len(args_data) < args_struct.sizeof() or len(ix.accounts) < AMM_MIN_ACCOUNTS:
            logger.debug(
                f"{side.value} instruction too short: {len(args_data)} arg bytes, {len(ix.accounts)} accounts",
                extra={'signature': envelope.signature_b58},
            )
            return None

        pool = envelope.account(ix, 0)
        user = envelope.account(ix, 1)
        base_mint = envelope.account(ix, 3)
        quote_mint = envelope.account(ix, 4)
        if None in (pool, user, base_mint, quote_mint):
            logger.debug("Instruction account index out of range", extra={'signature': envelope.signature_b58})
            return None

        args = args_struct.parse(args_data)
        if side == TradeSide.BUY:
            token_amount, limit = args.base_amount_out, args.max_quote_amount_in
            event_discriminator = BUY_EVENT_DISCRIMINATOR
        else:
            token_amount, limit = args.base_amount_in, args.min_quote_amount_out
            event_discriminator = SELL_EVENT_DISCRIMINATOR

        trade = TradeEvent(
            signature=envelope.signature_b58,
            slot=envelope.slot,
            timestamp=now_ms(),
            side=side,
            pool=pool,
            user=user,
            base_mint=base_mint,
            quote_mint=quote_mint,
            token_amount=token_amount,
            sol_amount=limit,
            limit_sol_amount=limit,
        )

        parsed = self._find_event(envelope.inner_for(index), event_discriminator, TRADE_EVENT)
        if parsed is None:
            # Provisional: price and fees stay zero
            self.unconfirmed_count += 1
            return trade

        trade.lp_fee = parsed.lp_fee
        trade.protocol_fee = parsed.protocol_fee
        trade.sol_amount = parsed.user_quote_amount
        if trade.token_amount > 0 and trade.sol_amount > 0:
            trade.price = trade.token_amount / trade.sol_amount

        return trade

    def _find_event(self, inner: Sequence[CompiledInstruction], discriminator: bytes, layout):
        """Parse the first inner instruction whose 16-byte prefix matches."""
        for inner_ix in inner:
            data = inner_ix.data
            if data[:16] != discriminator:
                continue
            if len(data) < layout.sizeof():
                logger.debug(f"PumpSwap event too short: {len(data)} bytes")
                continue
            try:
                return layout.parse(data)
            except ConstructError as e:
                logger.debug(f"Failed to parse PumpSwap event: {e}")
        return None

    def get_stats(self) -> dict:
        """Get decoder statistics."""
        return {
            "program_id": self.program_id,
            "parse_success_count": self.parse_success_count,
            "parse_failure_count": self.parse_failure_count,
            "unconfirmed_count": self.unconfirmed_count,
        }
