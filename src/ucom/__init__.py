"""ucom: build automation for Unity projects."""
