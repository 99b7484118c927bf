"""Extract form controls from HTML for fill previews.

Reads input, textarea and select elements in document order and reports
the value a browser would expose through element.value on page load.
"""

from bs4 import BeautifulSoup, Tag

from app.services.field_matcher import SKIPPED_INPUT_TYPES, FormControl, SelectOption


def _attr(element: Tag, name: str) -> str:
    value = element.get(name)
    if isinstance(value, list):
        return " ".join(value)
    return value or ""


def _option(element: Tag) -> SelectOption:
    text = " ".join(element.get_text().split())
    value = _attr(element, "value") if element.has_attr("value") else text
    return SelectOption(value=value, text=text)


def _select_value(element: Tag, options: tuple[SelectOption, ...]) -> str:
    if not options:
        return ""
    tags = element.find_all("option")
    chosen = next((i for i, o in enumerate(tags) if o.has_attr("selected")), 0)
    return options[chosen].value


def _to_control(element: Tag) -> FormControl | None:
    tag = element.name.lower()
    options: tuple[SelectOption, ...] = ()
    if tag == "input":
        input_type = _attr(element, "type").strip().lower()
        if input_type in SKIPPED_INPUT_TYPES:
            return None
        value = _attr(element, "value")
    elif tag == "textarea":
        input_type = ""
        value = element.get_text()
    else:
        input_type = ""
        options = tuple(_option(o) for o in element.find_all("option"))
        value = _select_value(element, options)

    return FormControl(
        tag=tag,
        type=input_type,
        name=_attr(element, "name"),
        id=_attr(element, "id"),
        placeholder=_attr(element, "placeholder"),
        value=value,
        options=options,
    )


def parse_form_controls(html: str) -> list[FormControl]:
    """Parse fillable form controls from an HTML document or fragment.

    Args:
        html: Page markup.

    Returns:
        Controls in document order. Hidden, button-like, file and
        checkbox/radio inputs are left out.
    """
    soup = BeautifulSoup(html, "html.parser")
    controls = []
    for element in soup.find_all(["input", "textarea", "select"]):
        control = _to_control(element)
        if control is not None:
            controls.append(control)
    return controls
