from datetime import date

from conftest import load

from catalog import models


def test_author_list_sorted_by_family_name(client, make_author):
    make_author("Ursula", "Le Guin")
    make_author("Isaac", "Asimov")

    response = client.get("/catalog/authors")
    assert response.template.name == "author_list.html"
    assert [author.name for author in response.context["author_list"]] == [
        "Asimov, Isaac",
        "Le Guin, Ursula",
    ]


def test_create_author(client):
    response = client.post(
        "/catalog/author/create",
        data={"first_name": " Frank ", "family_name": "Herbert", "date_of_birth": "1920-10-08"},
        follow_redirects=False,
    )
    assert response.status_code == 303

    detail = client.get(response.headers["location"])
    author = detail.context["author"]
    assert author.name == "Herbert, Frank"
    assert author.date_of_birth == date(1920, 10, 8)
    assert author.date_of_death is None
    assert detail.context["author_books"] == []


def test_create_author_missing_names(client):
    response = client.post("/catalog/author/create", data={"first_name": "", "family_name": ""})
    assert response.status_code == 200
    assert response.template.name == "author_form.html"
    assert [error["param"] for error in response.context["errors"]] == ["first_name", "family_name"]
    assert client.get("/catalog/authors").context["author_list"] == []


def test_create_author_invalid_date(client):
    response = client.post(
        "/catalog/author/create",
        data={"first_name": "Frank", "family_name": "Herbert", "date_of_death": "1986-02-30"},
    )
    assert response.context["errors"][0]["msg"] == "Invalid date of death"
    assert response.context["author"]["date_of_death"] == "1986-02-30"


def test_author_detail_lists_books(client, make_author, make_book):
    author_id = make_author()
    make_book(title="I, Robot", author_id=author_id)
    make_book(title="Emma")

    response = client.get(f"/catalog/author/{author_id}")
    assert [book.title for book in response.context["author_books"]] == ["I, Robot"]


def test_author_detail_not_found(client):
    assert client.get("/catalog/author/missing").status_code == 404


def test_update_author_keeps_identifier(client, make_author):
    author_id = make_author(date_of_birth=date(1920, 1, 2))

    form = client.get(f"/catalog/author/{author_id}/update")
    assert form.context["author"]["date_of_birth"] == "1920-01-02"

    response = client.post(
        f"/catalog/author/{author_id}/update",
        data={"first_name": "Isaac", "family_name": "Asimov", "date_of_death": "1992-04-06"},
        follow_redirects=False,
    )
    assert response.headers["location"] == f"/catalog/author/{author_id}"
    author = load(models.Author, author_id)
    assert author.date_of_birth is None
    assert author.date_of_death == date(1992, 4, 6)


def test_author_delete_is_not_implemented(client, make_author):
    author_id = make_author()
    assert client.get(f"/catalog/author/{author_id}/delete").text == "NOT IMPLEMENTED: Author delete GET"
    assert client.post(f"/catalog/author/{author_id}/delete").text == "NOT IMPLEMENTED: Author delete POST"


def test_update_author_missing_names(client, make_author):
    author_id = make_author("Isaac", "Asimov")

    response = client.post(
        f"/catalog/author/{author_id}/update", data={"first_name": "  ", "family_name": ""}
    )
    assert response.status_code == 200
    assert response.template.name == "author_form.html"
    assert response.context["title"] == "Update Author"
    assert [error["msg"] for error in response.context["errors"]] == [
        "First name must be specified.",
        "Family name must be specified.",
    ]
    author = load(models.Author, author_id)
    assert author.first_name == "Isaac"
    assert author.family_name == "Asimov"
