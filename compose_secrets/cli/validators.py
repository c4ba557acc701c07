"""Input validation for CLI arguments."""
import re
import sys
from typing import Sequence

SECRET_NAME_PATTERN = r'^[a-zA-Z0-9_-]+$'
TARGET_SERVICES_PATTERN = r'^[a-zA-Z0-9\s._-]*$'
ENV_VARIABLE_PATTERN = r'^[A-Za-z_][A-Za-z0-9_]*$'


def validate_secret_names(names: Sequence[str]) -> None:
    """
    Validate secret names match Secret Manager requirements.

    Allowed characters: [a-zA-Z0-9_-]

    Args:
        names: Secret names to validate

    Raises:
        SystemExit with code 2 if validation fails
    """
    for name in names:
        if not name:
            print("Error: Secret name cannot be empty", file=sys.stderr)
            print("\nSecret names must match: [a-zA-Z0-9_-]", file=sys.stderr)
            sys.exit(2)

        if not re.match(SECRET_NAME_PATTERN, name):
            print(f"Error: Invalid secret name '{name}'", file=sys.stderr)
            print("\nAllowed characters: letters, numbers, underscores (_), hyphens (-)", file=sys.stderr)
            print("Not allowed: dots (.), spaces, special characters (@, $, !, etc.)", file=sys.stderr)
            sys.exit(2)


def validate_target_services(services: str) -> None:
    """
    Validate a space separated list of compose service names.

    The value ends up on a command line, so only plain service name
    characters are accepted.

    Raises:
        SystemExit with code 2 if validation fails
    """
    if not re.match(TARGET_SERVICES_PATTERN, services):
        print("Error: Invalid characters in target services. Halting for security reasons.", file=sys.stderr)
        sys.exit(2)


def validate_binding_variable(variable: str) -> None:
    """Binding variable must be a valid environment variable name."""
    if not re.match(ENV_VARIABLE_PATTERN, variable):
        print(f"Error: Invalid environment variable name '{variable}'", file=sys.stderr)
        sys.exit(2)
