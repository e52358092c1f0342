"""
Typed input models for the catalog forms.

Each HTML form maps onto one Pydantic model. Submitted strings are trimmed
and escaped before validation, so both the persisted values and the values
echoed back into a re-rendered form are sanitized.
"""

from datetime import date
from typing import Annotated, Any, ClassVar, Dict, List, Optional, Tuple

from markupsafe import escape
from pydantic import AfterValidator, BaseModel, BeforeValidator, ValidationError
from pydantic_core import PydanticCustomError

from catalog.models import BOOK_INSTANCE_STATUSES


def parse_multi_value(value: Any) -> List[str]:
    """
    Normalize a multi-valued form field to a list of strings.

    A checkbox group arrives as nothing (no box ticked), a single value
    (one box) or a list (several boxes).

    Returns:
        [] for None, [value] for a scalar, the values of a list or tuple
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    return [str(value)]


def sanitize(value: Any) -> str:
    """Trim surrounding whitespace and escape HTML-significant characters."""
    if value is None:
        return ""
    return str(escape(str(value).strip()))


def required(message: str):
    def check(value: str) -> str:
        if len(value) < 1:
            raise PydanticCustomError("missing_value", message)
        return value

    return check


def iso_date(message: str):
    """Accept '' (no date) or a YYYY-MM-DD string."""

    def parse(value: Any) -> Optional[date]:
        if isinstance(value, date):
            return value
        value = sanitize(value)
        if not value:
            return None
        try:
            return date.fromisoformat(value)
        except ValueError:
            raise PydanticCustomError("invalid_date", message)

    return parse


def one_of(choices: Tuple[str, ...], message: str):
    def check(value: str) -> str:
        if value not in choices:
            raise PydanticCustomError("invalid_choice", message)
        return value

    return check


SanitizedStr = Annotated[str, BeforeValidator(sanitize)]
SanitizedList = Annotated[List[SanitizedStr], BeforeValidator(parse_multi_value)]


class CatalogForm(BaseModel):
    """
    Base class for form models.

    multi_valued names the fields that may be submitted more than once.
    reference_messages maps fields holding the id of another record to the
    error shown when that record does not exist.
    """

    multi_valued: ClassVar[Tuple[str, ...]] = ()
    reference_messages: ClassVar[Dict[str, str]] = {}

    @classmethod
    def sanitized_values(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        """Submitted values after trimming and escaping, keyed by field name."""
        values = {}
        for name in cls.model_fields:
            if name in cls.multi_valued:
                values[name] = [sanitize(item) for item in parse_multi_value(data.get(name))]
            else:
                values[name] = sanitize(data.get(name))
        return values


class GenreForm(CatalogForm):
    name: Annotated[SanitizedStr, AfterValidator(required("Genre name required"))]


class AuthorForm(CatalogForm):
    first_name: Annotated[SanitizedStr, AfterValidator(required("First name must be specified."))]
    family_name: Annotated[SanitizedStr, AfterValidator(required("Family name must be specified."))]
    date_of_birth: Annotated[Optional[date], BeforeValidator(iso_date("Invalid date of birth"))]
    date_of_death: Annotated[Optional[date], BeforeValidator(iso_date("Invalid date of death"))]


class BookForm(CatalogForm):
    multi_valued: ClassVar[Tuple[str, ...]] = ("genre",)
    reference_messages: ClassVar[Dict[str, str]] = {"author": "Author must not be empty."}

    title: Annotated[SanitizedStr, AfterValidator(required("Title must not be empty."))]
    author: Annotated[SanitizedStr, AfterValidator(required("Author must not be empty."))]
    summary: Annotated[SanitizedStr, AfterValidator(required("Summary must not be empty"))]
    isbn: Annotated[SanitizedStr, AfterValidator(required("ISBN must not be empty"))]
    genre: SanitizedList


class BookUpdateForm(BookForm):
    """Same fields as BookForm; the update page words its errors without a full stop."""

    reference_messages: ClassVar[Dict[str, str]] = {"author": "Author must not be empty"}

    title: Annotated[SanitizedStr, AfterValidator(required("Title must not be empty"))]
    author: Annotated[SanitizedStr, AfterValidator(required("Author must not be empty"))]


class BookInstanceForm(CatalogForm):
    reference_messages: ClassVar[Dict[str, str]] = {"book": "Book must be specified"}

    book: Annotated[SanitizedStr, AfterValidator(required("Book must be specified"))]
    imprint: Annotated[SanitizedStr, AfterValidator(required("Imprint must be specified"))]
    status: Annotated[SanitizedStr, AfterValidator(one_of(BOOK_INSTANCE_STATUSES, "Invalid status"))]
    due_back: Annotated[Optional[date], BeforeValidator(iso_date("Invalid date"))]


def form_to_dict(form, multi_valued: Tuple[str, ...] = ()) -> Dict[str, Any]:
    """
    Flatten submitted form data.

    Keys in multi_valued map to the list of their values. Any other key
    maps to a single value, the last one sent.
    """
    data = {}
    for key in form.keys():
        if key in multi_valued:
            data[key] = form.getlist(key)
        else:
            data[key] = form.get(key)
    return data


def validate_form(form_cls, data: Dict[str, Any]):
    """
    Validate submitted data against a form model.

    Every declared field is validated, absent ones as empty, so a missing
    required field reports its own message.

    Returns:
        (form or None, sanitized values, errors). errors is a list of
        {"param", "msg", "value"} dictionaries in field order.
    """
    values = form_cls.sanitized_values(data)
    raw = {name: data.get(name) for name in form_cls.model_fields}
    try:
        return form_cls.model_validate(raw), values, []
    except ValidationError as exc:
        errors = []
        for error in exc.errors():
            param = str(error["loc"][0])
            errors.append({"param": param, "msg": error["msg"], "value": values.get(param)})
        return None, values, errors


def reference_error(form_cls, param: str, values: Dict[str, Any]) -> Dict[str, Any]:
    """Error entry for a field whose id matches no stored record."""
    return {"param": param, "msg": form_cls.reference_messages[param], "value": values.get(param)}


def read_form(form_cls, form):
    """Validate a submitted form; see validate_form for the return value."""
    return validate_form(form_cls, form_to_dict(form, form_cls.multi_valued))
