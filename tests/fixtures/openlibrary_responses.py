# ABOUTME: Canned Open Library API payloads used by provider and pipeline tests.
# ABOUTME: Shapes follow the edition, work, author, and search.json endpoints.

EDITION_1984 = {
    "key": "/books/OL300M",
    "title": "1984",
    "authors": [{"key": "/authors/OL200A"}],
    "publishers": ["Signet Classics"],
    "publish_date": "1961",
    "isbn_13": ["9780451524935"],
    "isbn_10": ["0451524934"],
    "languages": [{"key": "/languages/eng"}],
    "number_of_pages": 328,
    "works": [{"key": "/works/OL100W"}],
    "identifiers": {"goodreads": ["5470"]},
    "physical_format": "Mass Market Paperback",
}

EDITION_WITH_SERIES = {
    "key": "/books/OL301M",
    "title": "Foundation",
    "authors": [{"key": "/authors/OL201A"}],
    "publishers": ["Bantam Spectra"],
    "publish_date": "1991",
    "isbn_13": ["9780553293357"],
    "series": ["Foundation"],
    "description": {"type": "/type/text", "value": "The first Foundation novel."},
    "works": [{"key": "/works/OL101W"}],
}

WORK_STR_DESCRIPTION = {
    "key": "/works/OL100W",
    "title": "Nineteen Eighty-Four",
    "description": "A dystopian novel about totalitarian surveillance.",
}

WORK_DICT_DESCRIPTION = {
    "key": "/works/OL100W",
    "title": "Nineteen Eighty-Four",
    "description": {
        "type": "/type/text",
        "value": "A dystopian novel about totalitarian surveillance.",
    },
}

WORK_NO_DESCRIPTION = {
    "key": "/works/OL100W",
    "title": "Nineteen Eighty-Four",
}

AUTHOR_ORWELL = {
    "key": "/authors/OL200A",
    "name": "George Orwell",
}

SEARCH_1984 = {
    "numFound": 2,
    "docs": [
        {
            "key": "/works/OL100W",
            "title": "1984",
            "author_name": ["George Orwell"],
            "first_publish_year": 1949,
            "isbn": ["9780451524935", "0451524934"],
            "publisher": ["Signet Classics", "Secker & Warburg"],
            "language": ["eng"],
            "subject": ["Dystopias", "Totalitarianism", "Political fiction"],
            "number_of_pages_median": 328,
            "edition_count": 180,
        },
        {
            "key": "/works/OL102W",
            "title": "Animal Farm",
            "author_name": ["George Orwell"],
            "first_publish_year": 1945,
            "isbn": ["9780451526342"],
            "language": ["eng"],
        },
    ],
}

SEARCH_MINIMAL = {
    "numFound": 1,
    "docs": [{"key": "/works/OL103W", "title": "Homage to Catalonia"}],
}

SEARCH_EMPTY = {"numFound": 0, "docs": []}
