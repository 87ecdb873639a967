"""
Unauthenticated informational endpoints: root and documentation page.
"""

from fastapi import APIRouter
from fastapi.responses import HTMLResponse, PlainTextResponse

router = APIRouter()

DOC_PAGE = """
<h1>Logjam</h1>
<p>This service accepts logging requests, and distributes the result to any
number of configured options</p>
<ul>
  <li><code>PUT /log?field=value</code>: one record from query parameters</li>
  <li><code>POST /log</code>: one record from a JSON object body</li>
  <li><code>POST /multi</code>: one record per object of a JSON array body</li>
</ul>
<p>Ingestion requests must carry a valid token in the
<code>x-logjam-token</code> header.</p>
"""


@router.get("/", include_in_schema=False)
async def root() -> PlainTextResponse:
    """Discourage random queries."""
    return PlainTextResponse("Go away.", status_code=400)


@router.get("/doc", response_class=HTMLResponse, summary="Documentation page")
async def doc() -> HTMLResponse:
    return HTMLResponse(DOC_PAGE)
