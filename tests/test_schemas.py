from datetime import date

from catalog import schemas


def test_parse_multi_value_shapes():
    """
    A multi-valued field may be absent, a single value or a list; all three
    come out as a list of strings.
    """
    assert schemas.parse_multi_value(None) == []
    assert schemas.parse_multi_value("g1") == ["g1"]
    assert schemas.parse_multi_value(["g1", "g2"]) == ["g1", "g2"]
    assert schemas.parse_multi_value(("g1",)) == ["g1"]


def test_sanitize_trims_and_escapes():
    assert schemas.sanitize("  Fantasy ") == "Fantasy"
    assert schemas.sanitize("<b>Tom & Jerry</b>") == "&lt;b&gt;Tom &amp; Jerry&lt;/b&gt;"
    assert schemas.sanitize(None) == ""


def test_genre_form_requires_name():
    form, values, errors = schemas.validate_form(schemas.GenreForm, {"name": "   "})
    assert form is None
    assert values == {"name": ""}
    assert errors == [{"param": "name", "msg": "Genre name required", "value": ""}]


def test_book_form_reports_every_missing_field():
    form, values, errors = schemas.validate_form(schemas.BookForm, {"title": "Dune"})
    assert form is None
    assert [error["param"] for error in errors] == ["author", "summary", "isbn"]
    assert errors[0]["msg"] == "Author must not be empty."
    assert values["title"] == "Dune"
    assert values["genre"] == []


def test_book_form_escapes_each_genre():
    form, values, errors = schemas.validate_form(
        schemas.BookForm,
        {"title": "Dune", "author": "a1", "summary": "Spice", "isbn": "1", "genre": ["<g1>", "g2"]},
    )
    assert errors == []
    assert form.genre == ["&lt;g1&gt;", "g2"]


def test_author_form_dates():
    form, values, errors = schemas.validate_form(
        schemas.AuthorForm,
        {"first_name": "Frank", "family_name": "Herbert", "date_of_birth": "1920-10-08", "date_of_death": ""},
    )
    assert errors == []
    assert form.date_of_birth == date(1920, 10, 8)
    assert form.date_of_death is None


def test_author_form_invalid_date():
    form, values, errors = schemas.validate_form(
        schemas.AuthorForm,
        {"first_name": "Frank", "family_name": "Herbert", "date_of_birth": "someday"},
    )
    assert form is None
    assert errors[0]["param"] == "date_of_birth"
    assert errors[0]["msg"] == "Invalid date of birth"
    assert values["date_of_birth"] == "someday"


def test_book_instance_form_status_must_be_known():
    form, values, errors = schemas.validate_form(
        schemas.BookInstanceForm, {"book": "b1", "imprint": "Ace", "status": "Lost"}
    )
    assert form is None
    assert errors[0]["msg"] == "Invalid status"


class FakeForm:
    def __init__(self, items):
        self.items = items

    def keys(self):
        return list(dict.fromkeys(key for key, _ in self.items))

    def getlist(self, key):
        return [value for k, value in self.items if k == key]

    def get(self, key):
        return self.getlist(key)[-1]


def test_form_to_dict_keeps_repeated_multi_valued_keys():
    form = FakeForm([("title", "Dune"), ("genre", "g1"), ("genre", "g2")])
    data = schemas.form_to_dict(form, schemas.BookForm.multi_valued)
    assert data == {"title": "Dune", "genre": ["g1", "g2"]}


def test_form_to_dict_single_valued_key_sent_twice():
    """
    A plain field submitted twice keeps one value instead of becoming a
    list, and a lone multi-valued key still comes out as a list.
    """
    form = FakeForm([("title", "A"), ("title", "B"), ("genre", "g1")])
    data = schemas.form_to_dict(form, schemas.BookForm.multi_valued)
    assert data == {"title": "B", "genre": ["g1"]}


def test_book_update_form_messages_have_no_full_stop():
    form, values, errors = schemas.validate_form(
        schemas.BookUpdateForm, {"summary": "Spice", "isbn": "1"}
    )
    assert [error["msg"] for error in errors] == [
        "Title must not be empty",
        "Author must not be empty",
    ]
