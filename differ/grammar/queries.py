"""
Tree-sitter query definitions for the four capture kinds.

Every pattern captures ``@name`` (the identifier) and, where possible,
``@definition`` (the whole definition node whose span is reported).
Blank lines separate independent sub-patterns; each is compiled on its own
so a pattern that a particular grammar version rejects only disables itself.

When two patterns capture the same name and one definition contains the
other (``export function f`` vs ``function f``, a decorated function vs the
bare one), the outer definition wins.
"""

from __future__ import annotations

_PYTHON = {
    "functions": """\
(function_definition
  name: (identifier) @name) @definition

(decorated_definition
  definition: (function_definition
    name: (identifier) @name)) @definition
""",
    "classes": """\
(class_definition
  name: (identifier) @name) @definition

(decorated_definition
  definition: (class_definition
    name: (identifier) @name)) @definition
""",
    "methods": """\
(class_definition
  body: (block
    (function_definition
      name: (identifier) @name) @definition))

(class_definition
  body: (block
    (decorated_definition
      definition: (function_definition
        name: (identifier) @name)) @definition))
""",
    "imports": """\
(import_statement
  name: (dotted_name) @name) @definition

(import_statement
  name: (aliased_import
    name: (dotted_name) @name)) @definition

(import_from_statement
  module_name: (dotted_name) @name) @definition

(import_from_statement
  module_name: (relative_import) @name) @definition

(import_from_statement
  name: (dotted_name) @name) @definition

(import_from_statement
  name: (aliased_import
    name: (dotted_name) @name)) @definition
""",
}

_JS_IMPORTS = """\
(import_statement
  source: (string (string_fragment) @name)) @definition

(import_statement
  (import_clause (identifier) @name)) @definition

(import_statement
  (import_clause
    (named_imports
      (import_specifier
        name: (identifier) @name)))) @definition

(import_statement
  (import_clause
    (namespace_import (identifier) @name))) @definition

(lexical_declaration
  (variable_declarator
    name: (identifier) @name
    value: (call_expression
      function: (identifier) @_require
      (#eq? @_require "require")))) @definition
"""

_JS_FUNCTIONS = """\
(function_declaration
  name: (identifier) @name) @definition

(generator_function_declaration
  name: (identifier) @name) @definition

(export_statement
  declaration: (function_declaration
    name: (identifier) @name)) @definition

(lexical_declaration
  (variable_declarator
    name: (identifier) @name
    value: (arrow_function))) @definition

(lexical_declaration
  (variable_declarator
    name: (identifier) @name
    value: (function_expression))) @definition

(variable_declaration
  (variable_declarator
    name: (identifier) @name
    value: (arrow_function))) @definition

(export_statement
  declaration: (lexical_declaration
    (variable_declarator
      name: (identifier) @name
      value: (arrow_function)))) @definition
"""

_JAVASCRIPT = {
    "functions": _JS_FUNCTIONS,
    "classes": """\
(class_declaration
  name: (identifier) @name) @definition

(export_statement
  declaration: (class_declaration
    name: (identifier) @name)) @definition
""",
    "methods": """\
(class_declaration
  body: (class_body
    (method_definition
      name: (property_identifier) @name) @definition))
""",
    "imports": _JS_IMPORTS,
}

_TYPESCRIPT = {
    "functions": _JS_FUNCTIONS,
    "classes": """\
(class_declaration
  name: (type_identifier) @name) @definition

(abstract_class_declaration
  name: (type_identifier) @name) @definition

(interface_declaration
  name: (type_identifier) @name) @definition

(export_statement
  declaration: (class_declaration
    name: (type_identifier) @name)) @definition

(export_statement
  declaration: (abstract_class_declaration
    name: (type_identifier) @name)) @definition

(export_statement
  declaration: (interface_declaration
    name: (type_identifier) @name)) @definition
""",
    "methods": """\
(class_declaration
  body: (class_body
    (method_definition
      name: (property_identifier) @name) @definition))

(abstract_class_declaration
  body: (class_body
    (method_definition
      name: (property_identifier) @name) @definition))

(interface_declaration
  body: (interface_body
    (method_signature
      name: (property_identifier) @name) @definition))

(interface_declaration
  body: (object_type
    (method_signature
      name: (property_identifier) @name) @definition))
""",
    "imports": _JS_IMPORTS,
}

_RUST = {
    "functions": """\
(function_item
  name: (identifier) @name) @definition
""",
    "classes": """\
(impl_item
  type: (type_identifier) @name) @definition

(impl_item
  type: (generic_type
    type: (type_identifier) @name)) @definition

(trait_item
  name: (type_identifier) @name) @definition
""",
    "methods": """\
(impl_item
  body: (declaration_list
    (function_item
      name: (identifier) @name) @definition))

(trait_item
  body: (declaration_list
    (function_item
      name: (identifier) @name) @definition))

(trait_item
  body: (declaration_list
    (function_signature_item
      name: (identifier) @name) @definition))
""",
    "imports": """\
(use_declaration
  argument: (_) @name) @definition
""",
}

_JAVA = {
    "functions": """\
(method_declaration
  name: (identifier) @name) @definition
""",
    "classes": """\
(class_declaration
  name: (identifier) @name) @definition

(interface_declaration
  name: (identifier) @name) @definition

(enum_declaration
  name: (identifier) @name) @definition
""",
    "methods": """\
(class_declaration
  body: (class_body
    (method_declaration
      name: (identifier) @name) @definition))

(class_declaration
  body: (class_body
    (constructor_declaration
      name: (identifier) @name) @definition))

(interface_declaration
  body: (interface_body
    (method_declaration
      name: (identifier) @name) @definition))

(enum_declaration
  body: (enum_body
    (enum_body_declarations
      (method_declaration
        name: (identifier) @name) @definition)))
""",
    "imports": """\
(import_declaration
  (scoped_identifier) @name) @definition

(import_declaration
  (identifier) @name) @definition
""",
}

QUERIES: dict[str, dict[str, str]] = {
    "python": _PYTHON,
    "javascript": _JAVASCRIPT,
    "typescript": _TYPESCRIPT,
    "tsx": _TYPESCRIPT,
    "rust": _RUST,
    "java": _JAVA,
}
