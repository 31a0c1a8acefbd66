from dataclasses import dataclass, field
from enum import Enum, auto
from typing import List, Optional, Tuple, Union

from enkidu.errors import MalformedEffectError


class JumpType(Enum):
    UNCONDITIONAL_JUMP = auto()
    CONDITIONAL_TAKEN = auto()
    CONDITIONAL_NOT_TAKEN = auto()

    @property
    def is_conditional(self) -> bool:
        return self != JumpType.UNCONDITIONAL_JUMP


class EdgeKind(Enum):
    FALLTHROUGH = auto()
    UNCONDITIONAL_JUMP = auto()
    CONDITIONAL_TAKEN = auto()
    CONDITIONAL_NOT_TAKEN = auto()


@dataclass(frozen=True, repr=False)
class Instruction:
    """An operation that does not alter control flow.

    The size, when the tracer knows it, tells where the next instruction
    of a straight-line run must be. It takes no part in comparisons.
    """

    name: str
    operand: Optional[str] = None
    size: Optional[int] = field(default=None, compare=False)

    def __repr__(self) -> str:
        return "<{}{}>".format(
            self.name.upper(), f" {self.operand}" if self.operand else ""
        )

    def __str__(self) -> str:
        return f"{self.name} {self.operand}" if self.operand else self.name


@dataclass(frozen=True, repr=False)
class Jump:
    """An operation that transfers control.

    Attributes:
        name: The mnemonic reported by the tracer.
        success_address: Where control goes when the jump is taken.
        jump_type: Whether the jump is unconditional, and if not,
            which of its branches was taken when it was observed.
        failure_address: Where control goes when a conditional jump is
            not taken. Required iff the jump is conditional.
    """

    name: str
    success_address: int
    jump_type: JumpType = JumpType.UNCONDITIONAL_JUMP
    failure_address: Optional[int] = None

    def __repr__(self) -> str:
        if self.failure_address is None:
            return f"<{self.name.upper()} ${self.success_address:06X}>"
        return "<{} ${:06X} / ${:06X}>".format(
            self.name.upper(), self.success_address, self.failure_address
        )

    def __str__(self) -> str:
        return f"{self.name} ${self.success_address:06X}"

    @property
    def is_conditional(self) -> bool:
        return self.jump_type.is_conditional

    def branches(self) -> List[Tuple[EdgeKind, int]]:
        """The outgoing edges that this jump contributes to its block."""
        if not self.is_conditional:
            return [(EdgeKind.UNCONDITIONAL_JUMP, self.success_address)]
        assert self.failure_address is not None
        return [
            (EdgeKind.CONDITIONAL_TAKEN, self.success_address),
            (EdgeKind.CONDITIONAL_NOT_TAKEN, self.failure_address),
        ]


Effect = Union[Instruction, Jump]


def classify(effect: Effect) -> Effect:
    """Validate an effect before it is fed to the graph.

    Args:
        effect: The effect reported by the tracer.

    Returns:
        The effect itself.

    Raises:
        MalformedEffectError if the effect is neither an Instruction nor a
        Jump, if an Instruction has a non-positive size, or if the presence
        of a Jump's failure address does not match its conditionality.
    """
    if isinstance(effect, Instruction):
        if effect.size is not None and effect.size <= 0:
            raise MalformedEffectError(f"Instruction {effect!r} has no size.")
        return effect
    if not isinstance(effect, Jump):
        raise MalformedEffectError(f"Unknown effect: {effect!r}.")

    if effect.is_conditional and effect.failure_address is None:
        raise MalformedEffectError(
            f"Conditional jump {effect!r} has no failure address."
        )
    if not effect.is_conditional and effect.failure_address is not None:
        raise MalformedEffectError(
            f"Unconditional jump {effect!r} has a failure address."
        )
    return effect


def same_site(recorded: Effect, observed: Effect) -> bool:
    # The outcome of a conditional jump is allowed to differ between visits.
    if isinstance(recorded, Jump) and isinstance(observed, Jump):
        return (
            recorded.name == observed.name
            and recorded.success_address == observed.success_address
            and recorded.failure_address == observed.failure_address
            and recorded.is_conditional == observed.is_conditional
        )
    return recorded == observed
