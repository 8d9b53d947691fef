from __future__ import annotations

import unittest

from services.markdown.html_renderer import render_blocks, render_markdown
from services.markdown.parser import parse_markdown


class HtmlRendererTests(unittest.TestCase):
    def test_heading_and_inline_markup(self):
        html = render_markdown("# Hello **world**")
        self.assertIn("<h1", html)
        self.assertIn('<strong class="md-strong">world</strong>', html)

    def test_script_in_text_is_escaped(self):
        html = render_markdown("Hi <script>alert(1)</script>")
        self.assertNotIn("<script>", html)
        self.assertIn("&lt;script&gt;", html)

    def test_markup_inside_emphasis_is_escaped(self):
        html = render_markdown('**<img src=x onerror="alert(1)">**')
        self.assertNotIn("<img", html)

    def test_links_open_in_new_tab(self):
        html = render_markdown("[site](https://example.com)")
        self.assertIn('href="https://example.com"', html)
        self.assertIn('target="_blank"', html)
        self.assertIn('rel="noopener noreferrer"', html)

    def test_javascript_links_lose_their_href(self):
        html = render_markdown("[click](javascript:alert(1))")
        self.assertNotIn("javascript:", html)

    def test_code_block_is_escaped_verbatim(self):
        html = render_markdown("```html\n<b>raw</b>\n```")
        self.assertIn("<pre", html)
        self.assertIn('data-language="html"', html)
        self.assertIn("&lt;b&gt;raw&lt;/b&gt;", html)

    def test_table_has_head_and_body(self):
        html = render_markdown("| A | B |\n|---|---|\n| 1 | 2 |")
        self.assertIn("<thead><tr><th>A</th><th>B</th></tr></thead>", html)
        self.assertIn("<tbody><tr><td>1</td><td>2</td></tr></tbody>", html)

    def test_ordered_and_unordered_lists(self):
        self.assertIn("<ol", render_markdown("1. a\n2. b"))
        self.assertIn("<ul", render_markdown("- a\n- b"))

    def test_audio_summary_hidden_in_written_view(self):
        html = render_markdown("[AUDIO]Résumé parlé[/AUDIO]Texte écrit", strip_audio=True)
        self.assertNotIn("Résumé parlé", html)
        self.assertIn("Texte écrit", html)

    def test_one_markup_fragment_per_block(self):
        nodes = parse_markdown("# T\n\npara\n\n- a\n- b\n\n---")
        rendered = render_blocks(nodes)
        self.assertEqual([kind for kind, _ in rendered], [node.kind for node in nodes])


if __name__ == "__main__":
    unittest.main()
