"""Transaction management and identifier helpers."""
