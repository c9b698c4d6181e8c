# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.


class PedigreeImportError(ValueError):
    """
    Base class for every failure that aborts an import.
    No partial graph is ever returned when one of these is raised.
    """
    PREFIX = "Unable to import pedigree: "

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"{self.PREFIX}{reason}")


class MalformedInputError(PedigreeImportError):
    """Input is not valid JSON or not a resource shape we understand."""


class ReferenceImportError(PedigreeImportError):
    """A reference is ambiguous, dangling, or a record has no id or name."""


class StructuralImportError(PedigreeImportError):
    """Self-parenthood, a gender/parent contradiction or a duplicate id."""


class GraphValidationError(RuntimeError):
    """Raised by Graph.validate() when a structural invariant does not hold."""
