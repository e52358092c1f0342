from pathlib import Path

from fastapi.templating import Jinja2Templates

from catalog import config


templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
templates.env.globals["app_title"] = config.APP_TITLE
