from typing import NamedTuple
from enum import Enum
import resource


class LimitType(Enum):
	Files = resource.RLIMIT_NOFILE


# Each connection holds a socket, and a file while it is streamed
REASONABLE_LIMITS: dict[LimitType, int] = {
	LimitType.Files: 10 * 10240,
}


class Limit(NamedTuple):
	type: LimitType
	soft: int
	hard: int


def limit(scope: LimitType) -> Limit:
	return Limit(scope, *resource.getrlimit(scope.value))


def unlimit(
	scope: LimitType, ratio: float = 1.0, *, maximum: int | None = 0
) -> int | bool:
	"""Raises the soft limit of the given scope towards its hard limit,
	returning the new limit or `False` when it could not be changed."""
	lm = limit(scope)
	# An infinite hard limit would overflow the computation below
	hard: int = lm.hard if lm.hard != resource.RLIM_INFINITY else lm.soft
	try:
		target = int(lm.soft + ratio * (hard - lm.soft))
		# Darwin reports really high limits that lead to OverflowErrors.
		maximum = REASONABLE_LIMITS.get(scope) if maximum == 0 else maximum
		if maximum:
			target = min(maximum, target)
		target = max(target, lm.soft) if lm.soft != resource.RLIM_INFINITY else target
		resource.setrlimit(scope.value, (target, lm.hard))
		return target
	except ValueError:
		return False
	except OSError:
		return False


# EOF
