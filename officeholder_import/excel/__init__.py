"""Spreadsheet reading and workbook output."""
