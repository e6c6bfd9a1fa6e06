from collections import OrderedDict
import contextlib
import functools
import logging
from typing import Any, Awaitable, Callable
import uuid

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup
from starlette.applications import Starlette
from starlette.background import BackgroundTask
from starlette.datastructures import UploadFile
from starlette.middleware import Middleware
from starlette.middleware.sessions import SessionMiddleware
from starlette.requests import Request
from starlette.responses import HTMLResponse, RedirectResponse, Response
from starlette.routing import Mount, Route
from starlette.staticfiles import StaticFiles

from kitchen import config
from kitchen.db import DocumentStore
from kitchen.domain.aopenai import openai_client_factory
from kitchen.domain.auth import AuthError, Session, SupabaseAuth
from kitchen.domain.favorites import Favorites
from kitchen.domain.llm_service import (
    InputKind,
    KitchenInput,
    LLMService,
    RequestError,
)
from kitchen.domain.models import Ingredient, Recipe
from kitchen.domain.shopping_list import ShoppingList
from kitchen.domain.storage import MemoryStore, Purpose, storage_key
from kitchen.domain.views import DIETARY_FILTERS, Pending, Screen, ViewController
from kitchen.html.cooking import CookingPage
from kitchen.log import setup_logging


logger = logging.getLogger(__name__)


CONFIG = config.Config()


def templates(html_dir: Any) -> Environment:
    return Environment(
        loader=FileSystemLoader(html_dir),
        autoescape=select_autoescape(),
    )


def aHTMLResponse(route: Callable[..., Awaitable[str | tuple[str, int]]]):
    @functools.wraps(route)
    async def wrapper(*args: Any, **kwargs: Any) -> HTMLResponse:
        resp = await route(*args, **kwargs)
        if not isinstance(resp, tuple):
            html, code = resp, 200
        else:
            html, code = resp
        return HTMLResponse(html, status_code=code)

    return wrapper


def home_redirect() -> RedirectResponse:
    return RedirectResponse("/", status_code=303)


class Kitchen:
    """One controller per browser, the least recently used dropped first.

    Controllers only hold transient screen state over the owner's documents,
    so an evicted one is rebuilt from the store on the next request.
    """

    def __init__(
        self, store: DocumentStore | MemoryStore, *, max_controllers: int = 1000
    ) -> None:
        self.store = store
        self.max_controllers = max_controllers
        self.controllers: OrderedDict[tuple[str, str], ViewController] = (
            OrderedDict()
        )

    async def controller(self, browser_id: str, owner: str) -> ViewController:
        key = (browser_id, owner)
        if key in self.controllers:
            self.controllers.move_to_end(key)
            return self.controllers[key]
        shopping = await ShoppingList.load(
            self.store, storage_key(Purpose.SHOPPING_LIST, owner)
        )
        favorites = await Favorites.load(
            self.store, storage_key(Purpose.FAVORITES, owner)
        )
        ctl = ViewController(shopping=shopping, favorites=favorites)
        self.controllers[key] = ctl
        while len(self.controllers) > self.max_controllers:
            self.controllers.popitem(last=False)
        return ctl

    def forget(self, browser_id: str) -> None:
        for key in [k for k in self.controllers if k[0] == browser_id]:
            del self.controllers[key]


def session_of(request: Request) -> Session | None:
    data = request.session.get("auth")
    return None if data is None else Session.from_dict(data)


def browser_id_of(request: Request) -> str:
    if "browser_id" not in request.session:
        request.session["browser_id"] = uuid.uuid4().hex
    return request.session["browser_id"]


def owner_of(request: Request) -> str | None:
    """Whose documents this browser sees: the signed in user's, or its own."""
    if request.app.state.config.accounts:
        session = session_of(request)
        return None if session is None else session.user.id
    return browser_id_of(request)


type ControllerRoute = Callable[[Request, ViewController], Awaitable[Response]]


def with_controller(route: ControllerRoute) -> Callable[[Request], Awaitable[Response]]:
    @functools.wraps(route)
    async def wrapper(request: Request) -> Response:
        owner = owner_of(request)
        if owner is None:
            return RedirectResponse("/login", status_code=303)
        kitchen: Kitchen = request.app.state.kitchen
        ctl = await kitchen.controller(browser_id_of(request), owner)
        return await route(request, ctl)

    return wrapper


def find_recipe(ctl: ViewController, recipe_name: str) -> Recipe | None:
    candidates = list(ctl.recipes) + list(ctl.favorites)
    if ctl.selected is not None:
        candidates.insert(0, ctl.selected)
    for recipe in candidates:
        if recipe.recipe_name == recipe_name:
            return recipe
    return None


async def form_input(request: Request) -> KitchenInput | None:
    async with request.form() as form:
        try:
            kind = InputKind(str(form.get("kind", "text")))
        except ValueError:
            return None
        if kind == InputKind.text:
            return KitchenInput(kind, str(form.get("text", "")))
        upload = form.get(kind.value)
        if not isinstance(upload, UploadFile) or not upload.size:
            return KitchenInput(kind, b"")
        return KitchenInput(
            kind,
            await upload.read(),
            mime_type=upload.content_type,
            filename=upload.filename,
        )


async def run_ingestion(
    ctl: ViewController,
    kitchen_input: KitchenInput,
    filters: list[str],
    *,
    llm: LLMService,
    pending: Pending,
) -> None:
    logger.info("Suggesting recipes for %r with %s", kitchen_input, filters)
    try:
        suggestions = await llm.suggest_recipes(kitchen_input, filters)
    except Exception:
        logger.exception("Could not suggest recipes.")
        if ctl.request is pending:
            ctl.ingestion_failed()
        return
    if ctl.request is not pending:
        logger.info("Dropping stale suggestions.")
        return
    logger.info("Got %d recipes.", len(suggestions.suggested_recipes))
    ctl.ingestion_succeeded(suggestions)


# Pages


async def homepage(request: Request) -> Response:
    state = request.app.state
    user_email = None
    if state.config.accounts:
        session = session_of(request)
        try:
            session = await state.auth.get_session(session)
        except AuthError:
            logger.exception("Could not check session.")
            session = None
        if session is None:
            request.session.pop("auth", None)
            return RedirectResponse("/login", status_code=303)
        request.session["auth"] = session.to_dict()
        user_email = session.user.email

    owner = owner_of(request)
    assert owner is not None
    ctl = await state.kitchen.controller(browser_id_of(request), owner)
    return HTMLResponse(
        state.templates.get_template("index.html").render(
            ctl=ctl,
            screen=ctl.screen.name.lower(),
            content=Markup(render_screen(ctl, state.templates)),
            filters=DIETARY_FILTERS,
            accounts=state.config.accounts,
            user_email=user_email,
        )
    )


def render_screen(ctl: ViewController, env: Environment) -> str:
    screen = ctl.screen
    if screen == Screen.COOKING and ctl.selected is not None:
        return CookingPage(
            ctl.selected,
            environment=env,
            is_favorite=ctl.is_favorite(ctl.selected.recipe_name),
            panel=ctl.panel,
        ).render()
    if screen == Screen.COOKING:
        return ""
    return env.get_template(f"{screen.name.lower()}.html").render(ctl=ctl)


# Ingestion and navigation


@with_controller
async def ingest(request: Request, ctl: ViewController) -> Response:
    if ctl.loading:
        return home_redirect()
    kitchen_input = await form_input(request)
    if kitchen_input is None:
        return Response("Unknown input kind.", status_code=400)
    if kitchen_input.empty:
        ctl.input_error()
        return home_redirect()
    ctl.submit()
    pending = ctl.request
    assert isinstance(pending, Pending)
    task = BackgroundTask(
        run_ingestion,
        ctl,
        kitchen_input,
        list(ctl.active_filters),
        llm=request.app.state.llm,
        pending=pending,
    )
    return RedirectResponse("/", status_code=303, background=task)


@with_controller
async def home(request: Request, ctl: ViewController) -> Response:
    ctl.home()
    return home_redirect()


@with_controller
async def toggle_filter(request: Request, ctl: ViewController) -> Response:
    try:
        ctl.toggle_filter(request.path_params["label"])
    except ValueError:
        return Response("Unknown filter.", status_code=404)
    return home_redirect()


@with_controller
async def select_recipe(request: Request, ctl: ViewController) -> Response:
    async with request.form() as form:
        recipe_name = str(form.get("recipe_name", ""))
    recipe = find_recipe(ctl, recipe_name)
    if recipe is None:
        return Response("Unknown recipe.", status_code=404)
    try:
        ctl.select_recipe(recipe)
    except ValueError:
        logger.info("Ignoring selection of %s from %s", recipe_name, ctl.view.name)
    return home_redirect()


@with_controller
async def toggle_favorite(request: Request, ctl: ViewController) -> Response:
    async with request.form() as form:
        recipe_name = str(form.get("recipe_name", ""))
    recipe = find_recipe(ctl, recipe_name)
    if recipe is None:
        return Response("Unknown recipe.", status_code=404)
    await ctl.toggle_favorite(recipe)
    return home_redirect()


@with_controller
async def add_all_to_list(request: Request, ctl: ViewController) -> Response:
    try:
        await ctl.add_all_to_list()
    except ValueError:
        logger.info("Nothing to add from %s", ctl.view.name)
    return home_redirect()


@with_controller
async def show_shopping(request: Request, ctl: ViewController) -> Response:
    ctl.show_shopping()
    return home_redirect()


@with_controller
async def show_favorites(request: Request, ctl: ViewController) -> Response:
    ctl.show_favorites()
    return home_redirect()


# Shopping list


@with_controller
async def remove_item(request: Request, ctl: ViewController) -> Response:
    async with request.form() as form:
        recipe_name = str(form.get("recipe_name", ""))
        name = str(form.get("name", ""))
        quantity = str(form.get("quantity", ""))
    item = Ingredient(name=name, quantity=quantity)
    await ctl.shopping.remove_item(recipe_name, item)
    return home_redirect()


@with_controller
async def remove_recipe(request: Request, ctl: ViewController) -> Response:
    async with request.form() as form:
        recipe_name = str(form.get("recipe_name", ""))
    await ctl.shopping.remove_recipe(recipe_name)
    return home_redirect()


@with_controller
async def clear_shopping(request: Request, ctl: ViewController) -> Response:
    await ctl.shopping.clear()
    return home_redirect()


# Cooking helpers, rendered into the cooking page


def form_index(value: Any) -> int:
    try:
        return int(str(value))
    except ValueError:
        return -1


@with_controller
@aHTMLResponse
async def substitutions(request: Request, ctl: ViewController) -> str | tuple[str, int]:
    env: Environment = request.app.state.templates
    llm: LLMService = request.app.state.llm
    async with request.form() as form:
        index = form_index(form.get("index"))
    recipe = ctl.selected
    if recipe is None or not 0 <= index < len(recipe.ingredients):
        return "Unknown ingredient.", 404
    ingredient = recipe.ingredients[index]
    panel = ctl.open_substitutions(ingredient)
    try:
        subs = await llm.substitutions(
            ingredient.name, ingredient.quantity, recipe.recipe_name
        )
    except RequestError:
        logger.exception("Could not find substitutes for %s", ingredient.name)
        ctl.substitutions_failed()
    else:
        ctl.substitutions_succeeded(subs)
    return env.get_template("substitutions.html").render(panel=panel)


@with_controller
@aHTMLResponse
async def close_substitutions(request: Request, ctl: ViewController) -> str:
    ctl.close_substitutions()
    return ""


@with_controller
async def speech(request: Request, ctl: ViewController) -> Response:
    llm: LLMService = request.app.state.llm
    async with request.form() as form:
        index = form_index(form.get("index"))
    recipe = ctl.selected
    if recipe is None or not 0 <= index < len(recipe.steps):
        return Response("Unknown step.", status_code=404)
    try:
        audio = await llm.text_to_speech(recipe.steps[index])
    except RequestError:
        logger.exception("Could not read step %d aloud.", index)
        return Response("Speech is unavailable.", status_code=502)
    return Response(audio.to_wav(), media_type="audio/wav")


# Accounts


def signed_in(request: Request, session: Session) -> RedirectResponse:
    """Keep the session and reload this browser's documents for the new user."""
    request.session["auth"] = session.to_dict()
    kitchen: Kitchen = request.app.state.kitchen
    kitchen.forget(browser_id_of(request))
    return home_redirect()


async def login(request: Request) -> HTMLResponse | RedirectResponse:
    env: Environment = request.app.state.templates
    auth: SupabaseAuth = request.app.state.auth
    match request.method.lower():
        case "get":
            mode = request.query_params.get("mode", "signin")
            return HTMLResponse(env.get_template("login.html").render(mode=mode))
        case "post":
            async with request.form() as form:
                mode = str(form.get("mode", "signin"))
                email = str(form.get("email", ""))
                password = str(form.get("password", ""))
            try:
                if mode == "signup":
                    session = await auth.sign_up(email, password)
                else:
                    session = await auth.sign_in_with_password(email, password)
            except AuthError as e:
                return HTMLResponse(
                    env.get_template("login.html").render(mode=mode, error=str(e)),
                    status_code=400,
                )
            if session is None:
                return HTMLResponse(
                    env.get_template("login.html").render(
                        mode="signin",
                        message="Signed up! Check your email to confirm your account.",
                    )
                )
            return signed_in(request, session)
        case _:
            raise ValueError("Unsupported method.")


async def oauth(request: Request) -> Response:
    auth: SupabaseAuth = request.app.state.auth
    redirect = auth.sign_in_with_oauth(
        request.path_params["provider"],
        redirect_to=str(request.url_for("auth_callback")),
    )
    request.session["code_verifier"] = redirect.code_verifier
    return RedirectResponse(redirect.url, status_code=303)


async def auth_callback(request: Request) -> HTMLResponse | RedirectResponse:
    env: Environment = request.app.state.templates
    auth: SupabaseAuth = request.app.state.auth
    code = request.query_params.get("code")
    verifier = request.session.pop("code_verifier", None)
    if not code or not verifier:
        error = request.query_params.get("error_description", "Sign in was cancelled.")
        return HTMLResponse(
            env.get_template("login.html").render(mode="signin", error=error),
            status_code=400,
        )
    try:
        session = await auth.exchange_code(code, verifier)
    except AuthError as e:
        return HTMLResponse(
            env.get_template("login.html").render(mode="signin", error=str(e)),
            status_code=400,
        )
    return signed_in(request, session)


async def logout(request: Request) -> Response:
    auth: SupabaseAuth = request.app.state.auth
    kitchen: Kitchen = request.app.state.kitchen
    session = session_of(request)
    if session is not None:
        try:
            await auth.sign_out(session)
        except AuthError:
            logger.exception("Could not sign out %s", session.user.id)
    kitchen.forget(browser_id_of(request))
    request.session.pop("auth", None)
    return RedirectResponse("/login", status_code=303)


def create_app(
    cfg: config.Config | None = None,
    *,
    llm: LLMService | None = None,
    store: DocumentStore | MemoryStore | None = None,
    auth: SupabaseAuth | None = None,
) -> Starlette:
    cfg = CONFIG if cfg is None else cfg
    llm = (
        LLMService(
            openai_client_factory(cfg.openai_api_key, timeout=cfg.request_timeout),
            model=cfg.core_model,
            transcription_model=cfg.transcription_model,
            speech_model=cfg.speech_model,
            speech_voice=cfg.speech_voice,
        )
        if llm is None
        else llm
    )
    store = DocumentStore(cfg.db_url) if store is None else store
    if cfg.accounts and auth is None:
        auth = SupabaseAuth(
            cfg.supabase_url, cfg.supabase_key, timeout=cfg.request_timeout
        )
    kitchen = Kitchen(store, max_controllers=cfg.max_sessions)

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        setup_logging(cfg.log_level)
        await store.connect()
        yield
        await store.disconnect()
        if auth is not None:
            await auth.close()

    routes = [
        Route("/", homepage),
        Route("/ingest", ingest, methods=["POST"]),
        Route("/home", home, methods=["POST"]),
        Route("/filters/{label}", toggle_filter, methods=["POST"]),
        Route("/recipes/select", select_recipe, methods=["POST"]),
        Route("/favorites/toggle", toggle_favorite, methods=["POST"]),
        Route("/cooking/shopping-list", add_all_to_list, methods=["POST"]),
        Route("/shopping", show_shopping, methods=["POST"]),
        Route("/shopping/remove-item", remove_item, methods=["POST"]),
        Route("/shopping/remove-recipe", remove_recipe, methods=["POST"]),
        Route("/shopping/clear", clear_shopping, methods=["POST"]),
        Route("/favorites", show_favorites, methods=["POST"]),
        Route("/substitutions", substitutions, methods=["POST"]),
        Route("/substitutions/close", close_substitutions, methods=["POST"]),
        Route("/speech", speech, methods=["POST"]),
        Mount("/assets", StaticFiles(directory=cfg.assets_dir), name="assets"),
    ]
    if cfg.accounts:
        assert auth is not None
        routes += [
            Route("/login", login, methods=["GET", "POST"]),
            Route("/login/oauth/{provider}", oauth),
            Route("/auth/callback", auth_callback, name="auth_callback"),
            Route("/logout", logout, methods=["POST"]),
        ]

    app = Starlette(
        debug=True if cfg.env == config.Env.local else False,
        routes=routes,
        middleware=[Middleware(SessionMiddleware, secret_key=cfg.session_secret)],
        lifespan=lifespan,
    )
    app.state.config = cfg
    app.state.llm = llm
    app.state.kitchen = kitchen
    app.state.auth = auth
    app.state.templates = templates(cfg.html_dir)
    return app
