from http import HTTPStatus

# Reason phrases, indexed by status code
HTTP_STATUS: dict[int, str] = {_.value: _.phrase for _ in HTTPStatus}


def statusText(status: int) -> str:
	"""Returns a generic body for an error status, like `404 Not Found`."""
	return f"{status} {HTTP_STATUS.get(status, 'Server Error')}"


# EOF
