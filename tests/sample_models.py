"""Sample types shared by the test modules and the YAML rule table fixtures."""

from dataclasses import dataclass
from typing import Annotated, Optional

from constraint_lib import ConstraintHandler, Label, Outcome, Rules, Valid, When


class Create:
    """Group marker class."""


@dataclass
class Address:
    city: Annotated[Optional[str], Rules("not-blank"), Label("City")] = None
    zip_code: Annotated[Optional[str], Rules(r"pattern(/^\d{5}$/)")] = None


@dataclass
class Account:
    username: Annotated[Optional[str], Rules("not-blank;length(3,20)"), Label("User name")] = None
    email: Annotated[Optional[str], Rules("email<create>")] = None
    age: Annotated[Optional[int], Rules("min(18)<create,update>")] = None
    address: Annotated[Optional[Address], Valid()] = None
    nickname: Optional[str] = None


@dataclass
class Signup:
    promo_code: Annotated[Optional[str], Rules("length(6)")] = None
    referral: Annotated[Optional[str], Rules("not-blank"), When("promo_code", outcome=Outcome.REJECTED)] = None
    discount: Annotated[Optional[int], Rules("range(1,50)"), When("promo_code")] = None


@dataclass
class PasswordChange:
    password: Annotated[Optional[str], Rules("not-blank"), Label("Password")] = None
    confirm: Annotated[Optional[str], Rules("equals('#password')"), Label("Confirmation")] = None


@dataclass
class TreeNode:
    name: Annotated[Optional[str], Rules("not-blank")] = None
    child: Annotated[Optional["TreeNode"], Valid()] = None


class Product:
    """Plain class without annotations, constrained through rule tables."""

    def __init__(self, code=None, quantity=None):
        self.code = code
        self.quantity = quantity


class EvenHandler(ConstraintHandler):
    """Integers must be even."""

    NAMES = ("even",)
    SUPPORTED_TYPES = (int,)

    def validate(self, value, fragment, context):
        return value % 2 == 0
