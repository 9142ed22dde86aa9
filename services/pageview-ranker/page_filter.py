"""Removal of non-article pages from raw top lists.

Top lists include special, administrative and portal pages next to real
articles. Titles are compared in decoded, space-normalized form.
"""

from typing import Iterable, List

from shared.models import Article, decode_title

UNWANTED_PREFIXES = (
    "Wikipédia:", "Wikipedia:",
    "Special:", "Spécial:", "Spezial:", "Speciale:", "Especial:",
    "MediaWiki:",
    "Help:", "Aide:", "Hilfe:", "Ayuda:",
    "Template:", "Modèle:", "Vorlage:", "Plantilla:",
    "User:", "Utilisateur:", "Benutzer:", "Usuario:",
    "Talk:", "Discussion:", "Diskussion:", "Discusión:",
    "File:", "Fichier:", "Datei:", "Archivo:",
    "Portal:",
    "Category:", "Catégorie:", "Kategorie:", "Categoría:",
)

UNWANTED_TITLES = frozenset({
    "Main Page",
    "Wikipédia:Accueil principal",
    "Wikipedia:Main Page",
    "Wikipedia:Hauptseite",
    "Wikipedia:Portada",
    "Cookie (informatique)",
    "HTTP cookie",
    "Cookie",
    "Recherche",
    "Search",
    "Suche",
    "Búsqueda",
})


def is_unwanted_page(article: Article) -> bool:
    title = decode_title(article.article)
    return title.startswith(UNWANTED_PREFIXES) or title in UNWANTED_TITLES


def filter_unwanted_pages(articles: Iterable[Article]) -> List[Article]:
    """Return the articles that are real content pages, in their original order."""
    return [article for article in articles if not is_unwanted_page(article)]
