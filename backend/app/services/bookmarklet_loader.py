"""Build the javascript: URL users save as a bookmark.

The loader is deliberately tiny: it fetches the fill script for its token
with a cache-busting timestamp and evaluates it. Errors are mapped to
alerts because the loader runs before any of our UI exists on the page.
"""

import json
from urllib.parse import urlencode

_LOADER_TEMPLATE = (
    "javascript:(function(){"
    "var x=new XMLHttpRequest();"
    "x.open('GET',%(url)s+'&t='+Date.now(),true);"
    "x.onreadystatechange=function(){"
    "if(x.readyState!==4)return;"
    "if(x.status===200){try{eval(x.responseText);}"
    "catch(e){alert('Bookmarklet failed to run: '+e.message);}}"
    "else if(x.status===429){alert(%(limit)s);}"
    "else if(x.status===400){alert(%(invalid)s);}"
    "else{alert(%(failed)s+x.status);}"
    "};"
    "x.send();"
    "})();"
)

LIMIT_MESSAGE = (
    "Usage limit reached for this bookmarklet. "
    "Please generate a new one from your dashboard."
)
INVALID_MESSAGE = "Bookmarklet expired or invalid. Please generate a new one."
FAILED_MESSAGE = "Failed to load bookmarklet script. Status: "


def build_loader(script_url: str, token: str, project_id: str, link_id: str) -> str:
    """Return the bookmarklet javascript: URL for a token.

    Args:
        script_url: Absolute URL of GET /bookmarklet/script.
        token: Capability token.
        project_id: Bound project id.
        link_id: Bound directory link id.

    Returns:
        A javascript: URL string.
    """
    query = urlencode({"token": token, "projectId": project_id, "linkId": link_id})
    return _LOADER_TEMPLATE % {
        "url": json.dumps(f"{script_url}?{query}"),
        "limit": json.dumps(LIMIT_MESSAGE),
        "invalid": json.dumps(INVALID_MESSAGE),
        "failed": json.dumps(FAILED_MESSAGE),
    }
