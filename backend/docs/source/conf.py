import pathlib
import sys

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parent.parent.parent))

project = 'Tile Store API'
release = '0.1.0'

templates_path = ['_templates']
exclude_patterns = [
    '.venv',
    'venv',
    '.pytest_cache',
    '.ruff_cache',
    '.mypy_cache',
]

html_static_path = ['_static']

extensions = [
    'sphinx.ext.autodoc',
    'sphinx.ext.napoleon',
    'sphinx.ext.autosummary',
    'sphinx.ext.viewcode',
    'sphinx.ext.doctest',
    'sphinx_autodoc_typehints',
    'myst_parser',
]

autosummary_generate = True
autosummary_imported_members = False

napoleon_google_docstring = True
napoleon_numpy_docstring = False
napoleon_include_init_with_doc = True
napoleon_use_param = True
napoleon_use_ivar = False

html_theme = 'sphinx_rtd_theme'

autodoc_default_options = {
    'members': True,
    'undoc-members': False,
    'show-inheritance': True,
}

# Sphinx builds must not create the default storage directory.
autodoc_mock_imports = ['tilestore.main']

source_suffix = {
    '.rst': 'restructuredtext',
    '.md': 'markdown',
}

html_theme_options = {
    'prev_next_buttons_location': 'bottom',
}
