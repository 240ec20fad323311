"""
Shared test fixtures — async DB, sample directory data, fixture pages, FastAPI test client.
"""

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import async_sessionmaker

from prospectflow.database import Base, build_engine, get_db
from prospectflow.main import app
from prospectflow.schemas import CandidateRecord, GeoPoint


# ── Test Database (SQLite in-memory) ────────────────────

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture()
async def db_engine():
    engine = build_engine(TEST_DB_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture()
async def db_session(db_engine):
    session_factory = async_sessionmaker(db_engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def client(db_engine):
    """FastAPI test client with test DB injected."""
    session_factory = async_sessionmaker(db_engine, expire_on_commit=False)

    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Sample Directory Data ───────────────────────────────

LYON = GeoPoint(lat=45.7578, lng=4.8320, city="Lyon", display_name="Lyon, Métropole de Lyon, France")

NOMINATIM_LYON = [
    {
        "lat": "45.7578137",
        "lon": "4.8320114",
        "display_name": "Lyon, Métropole de Lyon, Auvergne-Rhône-Alpes, France",
        "address": {"city": "Lyon", "country_code": "fr"},
    }
]

# Three named elements (one duplicated id pair) plus one unnamed element
OVERPASS_COIFFEUR = {
    "elements": [
        {
            "type": "node",
            "id": 101,
            "lat": 45.761,
            "lon": 4.835,
            "tags": {
                "shop": "hairdresser",
                "name": "Salon Belle Mèche",
                "addr:housenumber": "12",
                "addr:street": "Rue de la République",
                "addr:postcode": "69002",
                "addr:city": "Lyon",
                "phone": "+33 4 78 00 00 01",
            },
        },
        {
            "type": "way",
            "id": 202,
            "center": {"lat": 45.752, "lon": 4.828},
            "tags": {
                "shop": "hairdresser",
                "name": "Coiff'Tendance",
                "website": "http://coifftendance.wixsite.com/salon",
            },
        },
        {
            "type": "node",
            "id": 101,
            "lat": 45.761,
            "lon": 4.835,
            "tags": {"shop": "hairdresser", "name": "Salon Belle Mèche"},
        },
        {
            "type": "node",
            "id": 303,
            "lat": 45.77,
            "lon": 4.84,
            "tags": {"shop": "hairdresser"},
        },
    ]
}


@pytest.fixture()
def make_candidate():
    """Factory for CandidateRecord with sensible defaults."""

    def _make(**overrides) -> CandidateRecord:
        n = overrides.pop("n", 1)
        data = {
            "external_id": f"node/{n}",
            "osm_type": "node",
            "name": f"Business {n}",
            "lat": 45.75,
            "lng": 4.83,
            "address": "1, Rue Test, 69001 Lyon",
            "phone": "+33 4 00 00 00 00",
            "email": "contact@example.fr",
            "website": "https://example.fr",
            "sector": "Coiffeur",
            "city": "Lyon",
        }
        data.update(overrides)
        return CandidateRecord(**data)

    return _make


# ── Fixture Pages ───────────────────────────────────────

MODERN_PAGE = """<!DOCTYPE html>
<html lang="fr">
<head>
  <meta charset="utf-8">
  <title>Salon Belle Mèche — Coiffeur à Lyon</title>
  <meta name="description" content="Coiffeur visagiste au cœur de Lyon 2e.">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <meta property="og:title" content="Salon Belle Mèche">
  <link rel="canonical" href="https://bellemeche.fr/">
  <link rel="stylesheet" href="/css/main.css">
  <link rel="stylesheet" href="https://cdn.example.com/bootstrap.min.css">
</head>
<body>
  <h1>  Salon Belle Mèche  </h1>
  <img src="a.jpg" alt="Vitrine du salon">
  <img src="b.jpg" alt="">
  <footer>© 2023 Salon Belle Mèche · <a href="/mentions-legales">Mentions légales</a></footer>
</body>
</html>
"""

LEGACY_PAGE = """<html>
<head>
  <meta name="viewport" content="width=1024">
  <script src="/js/jquery.min.js"></script>
  <script>var x = "jQuery";</script>
</head>
<body>
  <table width="1000">
    <tr><td>Menu</td><td>Accueil</td><td>Tarifs</td></tr>
    <tr><td>a</td><td>b</td><td>c</td></tr>
    <tr><td>d</td><td>e</td><td>f</td></tr>
  </table>
  <object type="application/x-shockwave-flash" data="intro.swf"></object>
  <img src="1.gif"><img src="2.gif"><img src="3.gif"><img src="4.gif">
  <p>Copyright 2009 Garage Dupont</p>
  <p><img src="wp-content/uploads/logo.png" alt="logo"></p>
</body>
</html>
"""


# ── Fake Playwright ─────────────────────────────────────


def fake_playwright(page=None):
    """
    Build a stand-in for ``async_playwright`` wired to one browser, one
    context and one page. Returns (factory, browser, page); patch the
    factory over the module's ``async_playwright``.
    """
    from unittest.mock import AsyncMock, MagicMock

    if page is None:
        page = MagicMock()
        page.goto = AsyncMock()
        page.content = AsyncMock(return_value="")
        page.evaluate = AsyncMock(return_value={})
        page.screenshot = AsyncMock(return_value=b"jpeg-bytes")
        page.wait_for_timeout = AsyncMock()
        page.wait_for_selector = AsyncMock()
        consent = MagicMock()
        consent.is_visible = AsyncMock(return_value=False)
        consent.click = AsyncMock()
        page.locator.return_value.first = consent

    context = MagicMock()
    context.route = AsyncMock()
    context.new_page = AsyncMock(return_value=page)
    context.close = AsyncMock()

    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()

    pw = MagicMock()
    pw.chromium.launch = AsyncMock(return_value=browser)

    manager = MagicMock()
    manager.__aenter__ = AsyncMock(return_value=pw)
    manager.__aexit__ = AsyncMock(return_value=False)

    factory = MagicMock(return_value=manager)
    return factory, browser, page
