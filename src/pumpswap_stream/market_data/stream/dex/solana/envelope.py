"""
Transport-independent view of a Solana transaction.

The Yellowstone client converts each SubscribeUpdateTransaction into a
TransactionEnvelope so the decoders never touch protobuf objects.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional, Tuple

import base58

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompiledInstruction:
    """One instruction: program index, raw data and account references."""
    program_id_index: int
    data: bytes
    accounts: Tuple[int, ...] = ()


@dataclass(frozen=True)
class TransactionEnvelope:
    """
    Decoded-enough transaction for discriminator matching.

    account_keys holds the static message keys followed by the addresses
    loaded from lookup tables (writable first, then readonly), which is the
    order instruction account indexes refer to.
    """
    signature: bytes
    slot: int
    account_keys: Tuple[str, ...] = ()
    instructions: Tuple[CompiledInstruction, ...] = ()
    inner_instructions: Dict[int, Tuple[CompiledInstruction, ...]] = field(default_factory=dict)

    @property
    def signature_b58(self) -> str:
        """Signature in base58, as shown by explorers."""
        return base58.b58encode(self.signature).decode()

    def program_id(self, ix: CompiledInstruction) -> Optional[str]:
        """Resolve the program invoked by an instruction."""
        if 0 <= ix.program_id_index < len(self.account_keys):
            return self.account_keys[ix.program_id_index]
        return None

    def account(self, ix: CompiledInstruction, position: int) -> Optional[str]:
        """
        Resolve the position-th account reference of an instruction.

        Returns:
            Base58 address, or None if either index is out of range
        """
        if position >= len(ix.accounts):
            return None
        key_index = ix.accounts[position]
        if key_index >= len(self.account_keys):
            return None
        return self.account_keys[key_index]

    def instructions_for(self, program_id: str) -> Iterator[Tuple[int, CompiledInstruction]]:
        """Yield (index, instruction) for top-level instructions of a program."""
        for index, ix in enumerate(self.instructions):
            if self.program_id(ix) == program_id:
                yield index, ix

    def inner_for(self, index: int) -> Tuple[CompiledInstruction, ...]:
        """Inner instructions triggered by the top-level instruction at index."""
        return self.inner_instructions.get(index, ())

    @classmethod
    def from_update(cls, update: Any) -> "TransactionEnvelope":
        """
        Build an envelope from a SubscribeUpdateTransaction message.

        Args:
            update: geyser.SubscribeUpdateTransaction (or any object with the
                same attribute shape)
        """
        info = update.transaction
        message = info.transaction.message
        meta = info.meta

        keys = [base58.b58encode(bytes(k)).decode() for k in message.account_keys]
        keys.extend(base58.b58encode(bytes(k)).decode() for k in meta.loaded_writable_addresses)
        keys.extend(base58.b58encode(bytes(k)).decode() for k in meta.loaded_readonly_addresses)

        instructions = tuple(_compile(ix) for ix in message.instructions)
        inner = {
            group.index: tuple(_compile(ix) for ix in group.instructions)
            for group in meta.inner_instructions
        }

        return cls(
            signature=bytes(info.signature),
            slot=int(update.slot),
            account_keys=tuple(keys),
            instructions=instructions,
            inner_instructions=inner,
        )


def _compile(ix: Any) -> CompiledInstruction:
    # accounts arrives as bytes: one u8 key index per entry
    return CompiledInstruction(
        program_id_index=int(ix.program_id_index),
        data=bytes(ix.data),
        accounts=tuple(bytes(ix.accounts)),
    )
