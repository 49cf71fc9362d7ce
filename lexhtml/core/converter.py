"""
Handles the conversion of Lexical editor state nodes to HTML.
"""
import logging
import math
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping

from ..utils.config import ConversionConfig
from ..utils.html_utils import (
    apply_text_formatting, escape_html, format_number, sanitize_style,
    self_closing_tag, wrap_with_tag,
)
from ..utils.images import probe_image_size
from ..utils.structures import ConversionResult
from .scene_renderer import SceneRenderer


log = logging.getLogger("lexhtml")

Node = Mapping[str, Any]

HEADING_TAGS = ('h1', 'h2', 'h3', 'h4', 'h5', 'h6')
ALIGNMENTS = ('left', 'center', 'right', 'justify', 'start', 'end')
INLINE_IMAGE_STYLE = 'display: inline-block; vertical-align: middle;'


class NodeType(str, Enum):
    """Every node kind the converter knows. Anything else is handled as unknown."""
    ROOT = 'root'
    PARAGRAPH = 'paragraph'
    HEADING = 'heading'
    TEXT = 'text'
    TAB = 'tab'
    LINEBREAK = 'linebreak'
    QUOTE = 'quote'
    LIST = 'list'
    LISTITEM = 'listitem'
    LINK = 'link'
    AUTOLINK = 'autolink'
    HASHTAG = 'hashtag'
    TABLE = 'table'
    TABLEROW = 'tablerow'
    TABLECELL = 'tablecell'
    IMAGE = 'image'
    INLINE_IMAGE = 'inline-image'
    EQUATION = 'equation'
    CODE = 'code'
    CODE_HIGHLIGHT = 'code-highlight'
    COLLAPSIBLE_CONTAINER = 'collapsible-container'
    COLLAPSIBLE_TITLE = 'collapsible-title'
    COLLAPSIBLE_CONTENT = 'collapsible-content'
    POLL = 'poll'
    LAYOUT_CONTAINER = 'layout-container'
    LAYOUT_ITEM = 'layout-item'
    PAGE_BREAK = 'page-break'
    HORIZONTAL_RULE = 'horizontalrule'
    EXCALIDRAW = 'excalidraw'

    @classmethod
    def lookup(cls, value: Any) -> 'NodeType | None':
        try:
            return cls(value)
        except (ValueError, TypeError):
            return None


@dataclass
class ConversionContext:
    """
    Per-call state: node visit counter and diagnostics.
    A new one is created by every `convert()` call and passed down explicitly.
    """
    node_count: int = 0
    errors: list[str] = field(default_factory=list)

    def add_error(self, message: str):
        self.errors.append(message)
        log.warning(message)


def _children(node: Node) -> list:
    children = node.get('children')
    return children if isinstance(children, list) else []


def _is_type(node: Any, node_type: NodeType) -> bool:
    return isinstance(node, Mapping) and node.get('type') == node_type.value


def _dimension(value: Any) -> float | None:
    """Returns positive finite numeric sizes; drops values like 'inherit'."""
    if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value) and value > 0:
        return value
    return None


class LexicalToHtmlConverter:
    """
    Transforms a Lexical document (editor state JSON) into an HTML fragment.

    Conversion is dispatched per node type through a handler map. The
    converter itself holds no per-call state, so one instance can serve
    concurrent conversions.
    """

    def __init__(self, config: ConversionConfig | None = None):
        self.config = config or ConversionConfig()
        self.scene_renderer = SceneRenderer(self.config.scene_padding)

        self._handler_map: dict[NodeType, Callable[[Node, ConversionContext], str]] = {
            NodeType.ROOT: self._convert_children,
            NodeType.PARAGRAPH: self._handle_paragraph,
            NodeType.HEADING: self._handle_heading,
            NodeType.TEXT: self._handle_text,
            NodeType.TAB: self._handle_tab,
            NodeType.LINEBREAK: lambda node, ctx: '<br/>',
            NodeType.QUOTE: self._handle_quote,
            NodeType.LIST: self._handle_list,
            NodeType.LISTITEM: self._handle_list_item,
            NodeType.LINK: self._handle_link,
            NodeType.AUTOLINK: self._handle_link,
            NodeType.HASHTAG: self._handle_hashtag,
            NodeType.TABLE: self._handle_table,
            NodeType.TABLEROW: self._handle_table_row,
            NodeType.TABLECELL: self._handle_table_cell,
            NodeType.IMAGE: self._handle_image,
            NodeType.INLINE_IMAGE: self._handle_inline_image,
            NodeType.EQUATION: self._handle_equation,
            NodeType.CODE: self._handle_code,
            NodeType.CODE_HIGHLIGHT: self._handle_code_highlight,
            NodeType.COLLAPSIBLE_CONTAINER: self._handle_collapsible_container,
            NodeType.COLLAPSIBLE_TITLE: self._wrapper('summary'),
            NodeType.COLLAPSIBLE_CONTENT: self._wrapper('div', {'class': 'details-content'}),
            NodeType.POLL: self._handle_poll,
            NodeType.LAYOUT_CONTAINER: self._handle_layout_container,
            NodeType.LAYOUT_ITEM: self._wrapper('div', {'class': 'layout-item'}),
            NodeType.PAGE_BREAK: lambda node, ctx: wrap_with_tag('div', '', {'class': 'page-break'}),
            NodeType.HORIZONTAL_RULE: lambda node, ctx: '<hr/>',
            NodeType.EXCALIDRAW: self._handle_excalidraw,
        }

        missing = set(NodeType) - self._handler_map.keys()
        if missing:
            raise NotImplementedError(f"No handler for node types: {sorted(t.value for t in missing)}")


    def convert(self, document: Mapping) -> ConversionResult:
        """
        Converts a whole document. Never raises: node failures are recorded as
        diagnostics, and a document without a root gives an empty result with
        a single fatal diagnostic.
        """
        ctx = ConversionContext()
        try:
            root = self._find_root(document)
            html = self._convert_node(root, ctx)
        except Exception as e:
            log.error(f"Fatal conversion error: {e}", exc_info=True)
            return ConversionResult(html='', node_count=ctx.node_count, errors=[f"Fatal error: {e}"])

        log.debug(f"Converted {ctx.node_count} nodes with {len(ctx.errors)} diagnostics.")
        return ConversionResult(html=html, node_count=ctx.node_count, errors=list(ctx.errors))


    @staticmethod
    def _find_root(document: Mapping) -> Node:
        """Finds `editorState.root`, or `root` of a bare serialized editor state."""
        if not isinstance(document, Mapping):
            raise TypeError(f"Document must be a JSON object, got {type(document).__name__}")
        state = document.get('editorState', document)
        root = state.get('root') if isinstance(state, Mapping) else None
        if not isinstance(root, Mapping):
            raise ValueError("Document has no editorState.root")
        return root


    def _convert_node(self, node: Node, ctx: ConversionContext) -> str:
        """Core recursive step. A failing node turns into a comment marker."""
        ctx.node_count += 1
        if not isinstance(node, Mapping):
            ctx.add_error(f"Error converting node: expected an object, got {type(node).__name__}")
            return '<!-- Error converting node -->'

        raw_type = node.get('type')
        try:
            node_type = NodeType.lookup(raw_type)
            if node_type is None:
                return self._handle_unknown(node, ctx)
            return self._handler_map[node_type](node, ctx)
        except Exception as e:
            ctx.add_error(f"Error converting {raw_type}: {type(e).__name__}: {e}")
            return f"<!-- Error converting {escape_html(str(raw_type))} -->"


    def _convert_children(self, node: Node, ctx: ConversionContext) -> str:
        return ''.join(self._convert_node(child, ctx) for child in _children(node))


    def _handle_unknown(self, node: Node, ctx: ConversionContext) -> str:
        raw_type = node.get('type')
        if raw_type is None:
            ctx.add_error("Node without type")
        else:
            ctx.add_error(f"Unknown node type: {raw_type}")
        return self._convert_children(node, ctx)


    def _wrapper(self, tag: str, attrib: dict | None = None) -> Callable[[Node, ConversionContext], str]:
        """Handler that wraps converted children in a fixed tag."""
        def handler(node: Node, ctx: ConversionContext) -> str:
            return wrap_with_tag(tag, self._convert_children(node, ctx), attrib)
        return handler

    @staticmethod
    def _block_attrib(node: Node) -> dict:
        """Alignment and direction attributes of block elements."""
        align = node.get('format')
        direction = node.get('direction')
        return {
            'style': f"text-align: {align}" if align in ALIGNMENTS else None,
            'dir': direction if direction and direction != 'ltr' else None,
        }

    # --- BLOCK HANDLERS ---

    def _handle_paragraph(self, node: Node, ctx: ConversionContext) -> str:
        """
        Splits the paragraph at every linebreak child into runs, one <p> per run.
        Linebreaks are dropped, trailing empty runs are discarded. Children
        without a style of their own get the paragraph's textStyle on a copy.
        """
        attrib = self._block_attrib(node)

        runs: list[list] = [[]]
        for child in _children(node):
            if _is_type(child, NodeType.LINEBREAK):
                runs.append([])
            else:
                runs[-1].append(child)
        while runs and not runs[-1]:
            runs.pop()

        if not runs:
            return wrap_with_tag('p', '', attrib)

        text_style = node.get('textStyle')
        return ''.join(
            wrap_with_tag('p', ''.join(self._convert_inherited(child, text_style, ctx) for child in run), attrib)
            for run in runs
        )


    def _convert_inherited(self, child: Any, text_style: str | None, ctx: ConversionContext) -> str:
        if text_style and isinstance(child, Mapping) and not child.get('style'):
            child = {**child, 'style': text_style}
        return self._convert_node(child, ctx)


    def _handle_heading(self, node: Node, ctx: ConversionContext) -> str:
        tag = node.get('tag')
        if tag not in HEADING_TAGS:
            tag = 'h1'
        return wrap_with_tag(tag, self._convert_children(node, ctx), self._block_attrib(node))


    def _handle_quote(self, node: Node, ctx: ConversionContext) -> str:
        return wrap_with_tag('blockquote', self._convert_children(node, ctx), self._block_attrib(node))


    def _handle_list(self, node: Node, ctx: ConversionContext) -> str:
        list_type = node.get('listType')
        if list_type:
            tag = 'ol' if list_type == 'number' else 'ul'
        else:
            tag = node.get('tag') if node.get('tag') in ('ol', 'ul') else 'ul'

        attrib = {}
        start = node.get('start')
        if start is not None and start != 1:
            attrib['start'] = int(start)
        if list_type == 'check':
            attrib['class'] = 'checklist'
        return wrap_with_tag(tag, self._convert_children(node, ctx), attrib)


    def _handle_list_item(self, node: Node, ctx: ConversionContext) -> str:
        """A `checked` key, even when false, turns the item into a disabled checkbox."""
        content = self._convert_children(node, ctx)
        if 'checked' in node:
            checkbox = self_closing_tag('input', {
                'type': 'checkbox',
                'checked': 'checked' if node['checked'] else None,
                'disabled': 'disabled',
            })
            content = f"{checkbox} {content}"
        return wrap_with_tag('li', content)


    def _handle_table(self, node: Node, ctx: ConversionContext) -> str:
        content = self._convert_children(node, ctx)
        widths = [w for w in node.get('colWidths') or [] if _dimension(w)]
        if widths:
            cols = ''.join(self_closing_tag('col', {'style': f"width: {format_number(w)}px"}) for w in widths)
            content = wrap_with_tag('colgroup', cols) + content
        return wrap_with_tag('table', content)


    def _handle_table_row(self, node: Node, ctx: ConversionContext) -> str:
        height = _dimension(node.get('height'))
        attrib = {'style': f"height: {format_number(height)}px" if height else None}
        return wrap_with_tag('tr', self._convert_children(node, ctx), attrib)


    def _handle_table_cell(self, node: Node, ctx: ConversionContext) -> str:
        tag = 'th' if node.get('headerState') == 1 else 'td'
        col_span = node.get('colSpan') or 1
        row_span = node.get('rowSpan') or 1
        background = node.get('backgroundColor')
        attrib = {
            'colspan': col_span if col_span > 1 else None,
            'rowspan': row_span if row_span > 1 else None,
            'style': f"background-color: {sanitize_style(background)}" if background else None,
        }
        return wrap_with_tag(tag, self._convert_children(node, ctx), attrib)


    def _handle_code(self, node: Node, ctx: ConversionContext) -> str:
        """
        Renders a code block with numbered lines. Linebreak children become
        real newlines, trailing blank lines are dropped, interior ones kept.
        """
        parts = []
        for child in _children(node):
            if _is_type(child, NodeType.LINEBREAK):
                parts.append('\n')
            else:
                parts.append(self._convert_code_child(child, ctx))

        lines = ''.join(parts).split('\n')
        while len(lines) > 1 and not lines[-1].strip():
            lines.pop()
        line_count = len(lines)

        language = node.get('language') or ''
        label = escape_html((language or 'text').upper())
        code_id = f"code-{uuid.uuid4().hex[:9]}"

        code_lines = ''.join(
            wrap_with_tag('span', line if line.strip() else '<br/>', {'class': 'code-line', 'data-line': n})
            for n, line in enumerate(lines, start=1)
        )
        line_numbers = ''.join(
            wrap_with_tag('div', str(n), {
                'class': 'line-number', 'data-line': n, 'onclick': 'toggleLineHighlight(this)',
            })
            for n in range(1, line_count + 1)
        )
        controls = wrap_with_tag('div', ''.join([
            wrap_with_tag('button', '⧉ Copy', {
                'type': 'button', 'class': 'code-btn copy-btn',
                'onclick': f"copyCode('{code_id}')", 'title': 'Copy code',
            }),
            wrap_with_tag('button', '⊟ Fold', {
                'type': 'button', 'class': 'code-btn fold-btn',
                'onclick': f"toggleCodeFold('{code_id}')", 'title': 'Fold/Unfold code',
            }),
        ]), {'class': 'code-controls'})
        noun = 'line' if line_count == 1 else 'lines'
        header = wrap_with_tag('div', f"{label} ({line_count} {noun})", {'class': 'code-header'})

        code = wrap_with_tag('code', code_lines, {'class': f"language-{language}" if language else None})
        body = ''.join([
            controls,
            header,
            wrap_with_tag('div', line_numbers, {'class': 'code-line-numbers'}),
            wrap_with_tag('div', wrap_with_tag('pre', code), {'class': 'code-content'}),
        ])
        return wrap_with_tag('div', body, {
            'class': 'code-block', 'id': code_id, 'data-language': language or None,
        })


    def _convert_code_child(self, child: Any, ctx: ConversionContext) -> str:
        """Text with embedded newlines is converted piecewise, so no tag spans two lines."""
        if _is_type(child, NodeType.TEXT) or _is_type(child, NodeType.CODE_HIGHLIGHT):
            text = child.get('text')
            if isinstance(text, str) and '\n' in text:
                return '\n'.join(
                    self._convert_node({**child, 'text': piece}, ctx) if piece else ''
                    for piece in text.split('\n')
                )
        return self._convert_node(child, ctx)


    def _handle_collapsible_container(self, node: Node, ctx: ConversionContext) -> str:
        attrib = {'open': 'open' if node.get('open') else None}
        return wrap_with_tag('details', self._convert_children(node, ctx), attrib)


    def _handle_poll(self, node: Node, ctx: ConversionContext) -> str:
        poll = node.get('$') or node
        content = wrap_with_tag('h4', escape_html(str(poll.get('question') or '')))

        options = poll.get('options') or []
        if options:
            items = []
            for i, option in enumerate(options, start=1):
                text = escape_html(str(option.get('text') or f"Option {i}"))
                votes = len(option.get('votes') or [])
                items.append(wrap_with_tag('li', f"{text} ({votes} votes)"))
            content += wrap_with_tag('ul', ''.join(items))

        return wrap_with_tag('div', content, {'class': 'poll'})


    def _handle_layout_container(self, node: Node, ctx: ConversionContext) -> str:
        columns = node.get('templateColumns')
        attrib = {
            'class': 'layout-container',
            'style': f"grid-template-columns: {sanitize_style(columns)}" if columns else None,
        }
        return wrap_with_tag('div', self._convert_children(node, ctx), attrib)


    def _handle_image(self, node: Node, ctx: ConversionContext) -> str:
        width, height = _dimension(node.get('width')), _dimension(node.get('height'))
        src = node.get('src')
        if width is None and height is None and self.config.probe_image_size and isinstance(src, str):
            size = probe_image_size(src)
            if size:
                width, height = size

        max_width = _dimension(node.get('maxWidth'))
        attrib = {
            'src': src,
            'alt': node.get('altText') or '',
            'width': width,
            'height': height,
            'style': f"max-width: {format_number(max_width)}px" if max_width else None,
        }
        result = self_closing_tag('img', attrib)

        caption = node.get('caption')
        if caption and node.get('showCaption'):
            result += wrap_with_tag('div', self._convert_caption(caption, ctx), {'class': 'image-caption'})

        return wrap_with_tag('figure', result)


    def _convert_caption(self, caption: Any, ctx: ConversionContext) -> str:
        """Captions are nested editors, single nodes, or plain strings."""
        if isinstance(caption, Mapping):
            state = caption.get('editorState')
            if isinstance(state, Mapping) and isinstance(state.get('root'), Mapping):
                return self._convert_node(state['root'], ctx)
            return self._convert_node(caption, ctx)
        return escape_html(str(caption))

    # --- INLINE HANDLERS ---

    def _handle_text(self, node: Node, ctx: ConversionContext) -> str:
        text = node.get('text')
        if not text:
            return ''
        return apply_text_formatting(str(text), int(node.get('format') or 0), node.get('style') or None)


    def _handle_tab(self, node: Node, ctx: ConversionContext) -> str:
        return escape_html(str(node.get('text') or '\t'))


    def _handle_link(self, node: Node, ctx: ConversionContext) -> str:
        target = node.get('target')
        attrib = {
            'href': node.get('url'),
            'target': target if target != '_self' else None,
            'rel': node.get('rel'),
            'title': node.get('title'),
        }
        return wrap_with_tag('a', self._convert_children(node, ctx), attrib)


    def _handle_hashtag(self, node: Node, ctx: ConversionContext) -> str:
        return wrap_with_tag('span', escape_html(str(node.get('text') or '')), {'class': 'hashtag'})


    def _handle_inline_image(self, node: Node, ctx: ConversionContext) -> str:
        return self_closing_tag('img', {
            'src': node.get('src'),
            'alt': node.get('altText') or '',
            'style': INLINE_IMAGE_STYLE,
            'width': _dimension(node.get('width')),
            'height': _dimension(node.get('height')),
        })


    def _handle_equation(self, node: Node, ctx: ConversionContext) -> str:
        equation = escape_html(str(node.get('equation') or ''))
        tag = 'span' if node.get('inline') else 'div'
        return wrap_with_tag(tag, equation, {'class': 'equation'})


    def _handle_code_highlight(self, node: Node, ctx: ConversionContext) -> str:
        highlight = node.get('highlightType')
        attrib = {'class': f"highlight-{highlight}" if highlight else None}
        return wrap_with_tag('span', escape_html(str(node.get('text') or '')), attrib)


    def _handle_excalidraw(self, node: Node, ctx: ConversionContext) -> str:
        return self.scene_renderer.render(
            node.get('data'),
            _dimension(node.get('width')),
            _dimension(node.get('height')),
        )
