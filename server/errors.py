"""Ability failures raised by faction objects."""


class AbilityError(Exception):
    """Base class for faction ability failures."""

    def __init__(self, ability_id: str, reason: str):
        super().__init__(f"{ability_id}: {reason}")
        self.ability_id = ability_id
        self.reason = reason


class AbilityUnavailableError(AbilityError):
    """Cooldown, cost or a condition gate rejected the ability."""


class UnknownAbilityError(AbilityError):
    """The faction has no ability with this id."""

    def __init__(self, ability_id: str):
        super().__init__(ability_id, "unknown ability")
