from fastapi import HTTPException, status
from fastapi.responses import PlainTextResponse, RedirectResponse


def redirect(url):
    """Redirect after a form POST so a reload does not resubmit it."""
    return RedirectResponse(url, status_code=status.HTTP_303_SEE_OTHER)


def not_found(entity):
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{entity} not found")


def not_implemented(action):
    return PlainTextResponse(f"NOT IMPLEMENTED: {action}")


def mark_checked(choices, selected):
    """
    Flag each choice whose id is in selected.

    Ids are compared as strings, so submitted form values and stored ids
    match the same way.
    """
    selected = {str(item) for item in selected}
    for choice in choices:
        choice.checked = str(choice.id) in selected
    return choices


def record_exists(model, obj_id):
    def query(db):
        return db.get(model, obj_id) is not None

    return query
