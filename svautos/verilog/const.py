"""Marker and sentinel comment vocabulary."""

__copyright__ = """
Copyright (c) 2025 RapidStream Design Automation, Inc. and contributors.
All rights reserved. The contributor(s) of this file has/have agreed to the
RapidStream Contributor License Agreement.
"""

import re

AUTOINST = "/*AUTOINST*/"
AUTOLOGIC = "/*AUTOLOGIC*/"
AUTOWIRE = "/*AUTOWIRE*/"
AUTOREG = "/*AUTOREG*/"
AUTOPORTS = "/*AUTOPORTS*/"

# AUTOWIRE and AUTOREG are legacy spellings of AUTOLOGIC.
AUTOLOGIC_MARKERS = (AUTOLOGIC, AUTOWIRE, AUTOREG)

AUTOINST_PATTERN = re.compile(r'/\*AUTOINST(?:\s*\(\s*"([^"]*)"\s*\))?\s*\*/')

BEGIN_PREFIX = "// Beginning of automatic"
BEGIN_AUTOLOGIC = "// Beginning of automatic logic"
BEGIN_SENTINELS = (
    BEGIN_AUTOLOGIC,
    "// Beginning of automatic wires",
    "// Beginning of automatic regs",
)
END_AUTOMATICS = "// End of automatics"

GROUP_HEADERS = {"output": "Outputs", "inout": "Inouts", "input": "Inputs"}

UNCONNECTED = "_"
CONSTANTS = {"'0": "1'b0", "'1": "1'b1", "'z": "1'bz"}
