#!/usr/bin/env python3
"""Seed development templates and snippets into DynamoDB."""

import argparse
import os
import sys

# Add the shared layer to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src", "layers", "shared", "python"))

from pagecraft.models.snippet import GLOBAL_TENANT_ID
from pagecraft.services.snippet_resolver import SnippetResolver
from pagecraft.services.template_store import TemplateStore

GLOBAL_SNIPPETS = {
    "price": '<span class="price">{{ amount | money }}</span>',
    "button": '<a class="button" href="{{ link | default(\'#\') }}">{{ label }}</a>',
}

DEMO_TEMPLATES = [
    {
        "type": "hero",
        "name": "Hero",
        "schema": {
            "settings": [
                {"type": "text", "id": "heading", "label": "Heading", "default": "Welcome to our shop"},
                {"type": "textarea", "id": "subheading", "label": "Subheading"},
                {"type": "image_picker", "id": "image", "label": "Background image"},
                {"type": "range", "id": "padding_top", "label": "Top padding",
                 "min": 0, "max": 120, "step": 4, "default": 48},
                {"type": "range", "id": "padding_bottom", "label": "Bottom padding",
                 "min": 0, "max": 120, "step": 4, "default": 48},
            ],
            "blocks": [
                {
                    "type": "button",
                    "name": "Button",
                    "limit": 2,
                    "settings": [
                        {"type": "text", "id": "label", "label": "Label", "default": "Shop now"},
                        {"type": "url", "id": "link", "label": "Link"},
                    ],
                    "markup": "{% render 'button', label: block.settings.label, link: block.settings.link %}",
                },
            ],
            "presets": [
                {
                    "name": "Hero",
                    "blocks": [{"type": "button"}],
                },
            ],
        },
        "markup": (
            '<div class="hero" style="background-image: url({{ section.settings.image | image_url(width=1600) }})">'
            '<h1 class="hero__heading">{{ section.settings.heading }}</h1>'
            "{% if section.settings.subheading %}<p>{{ section.settings.subheading }}</p>{% endif %}"
            '<div class="hero__buttons">{% for block in section.blocks %}{{ block.html }}{% endfor %}</div>'
            "</div>"
        ),
        "stylesheet": (
            ".hero { background-size: cover; text-align: center; }\n"
            ".hero__heading { font-size: 2.5rem; }\n"
            "@media (max-width: 600px) { .hero__heading { font-size: 1.75rem; } }"
        ),
    },
    {
        "type": "featured-product",
        "name": "Featured product",
        "schema": {
            "settings": [
                {"type": "text", "id": "title", "label": "Product title", "default": "Classic tee"},
                {"type": "number", "id": "price", "label": "Price", "default": 25},
                {"type": "checkbox", "id": "show_price", "label": "Show price", "default": True},
                {"type": "select", "id": "layout", "label": "Layout", "default": "left",
                 "options": [{"value": "left", "label": "Image left"}, {"value": "right", "label": "Image right"}]},
            ],
            "presets": [{"name": "Featured product"}],
        },
        "markup": (
            '<div class="featured featured--{{ section.settings.layout }}">'
            "<h2>{{ section.settings.title }}</h2>"
            "{% if section.settings.show_price %}{% render 'price', amount: section.settings.price %}{% endif %}"
            "</div>"
        ),
        "stylesheet": ".featured { display: flex; gap: 2rem; }\n.featured--right { flex-direction: row-reverse; }",
    },
]


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Seed development templates")
    parser.add_argument("--stage", default="dev", help="Deployment stage")
    parser.add_argument("--region", default="us-east-1", help="AWS region")
    parser.add_argument("--tenant", default="demo-shop", help="Tenant to seed templates for")
    args = parser.parse_args()

    os.environ.setdefault("AWS_DEFAULT_REGION", args.region)
    os.environ["TABLE_NAME"] = f"pagecraft-{args.stage}"
    print(f"Seeding data to table: {os.environ['TABLE_NAME']}")

    resolver = SnippetResolver()
    for key, source in GLOBAL_SNIPPETS.items():
        snippet = resolver.put(GLOBAL_TENANT_ID, key, source, name=key.replace("-", " ").title())
        print(f"Stored global snippet: {snippet.key}")

    store = TemplateStore(snippet_resolver=resolver)
    for candidate in DEMO_TEMPLATES:
        template = store.save(args.tenant, candidate)
        print(f"Stored template: {template.type} (version {template.version})")

    print("\nSeeding complete!")


if __name__ == "__main__":
    main()
