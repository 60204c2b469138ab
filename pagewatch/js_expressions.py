"""JavaScript function sources sent to the page via CDP.

These resolve console arguments and locate click targets.
Kept in a separate module so the core stays clean.
"""

import json

# Error objects become their stack trace (or message); everything else is
# handed back as-is and serialized by value.
RESOLVE_ARG_JS = """(o) => {
  if (o instanceof Error) {
    return o.stack || o.message;
  }
  return o;
}"""


def click_target_js(selector: str) -> str:
    """Generate JS that finds an element and returns its click point.

    Scrolls the element into view first. Returns a JSON string with
    either ``{x, y}`` (viewport coordinates of the element center) or
    ``{error}`` when the element is missing or has no visible box.
    """
    sel_json = json.dumps(selector)
    return f"""
    (() => {{
      const el = document.querySelector({sel_json});
      if (!el) return JSON.stringify({{ error: 'missing' }});
      if (typeof el.scrollIntoViewIfNeeded === 'function') {{
        el.scrollIntoViewIfNeeded(true);
      }} else if (typeof el.scrollIntoView === 'function') {{
        el.scrollIntoView({{ block: 'center', inline: 'center' }});
      }}
      const rects = el.getClientRects ? el.getClientRects() : [];
      const rect = rects.length ? rects[0] : null;
      if (!rect || rect.width === 0 || rect.height === 0) {{
        return JSON.stringify({{ error: 'invisible' }});
      }}
      return JSON.stringify({{
        x: rect.left + rect.width / 2,
        y: rect.top + rect.height / 2,
      }});
    }})()
    """
