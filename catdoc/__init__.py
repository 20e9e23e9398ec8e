"""
catdoc - LuaCATS annotation documentation generator.

Lua 스텁 파일의 `---@` 주석을 읽어 doc.json 문서 그래프를 만듭니다.
"""

__version__ = "0.1.0"
