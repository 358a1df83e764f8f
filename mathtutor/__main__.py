import uvicorn

from mathtutor.core.config import settings


def main():
    uvicorn.run("mathtutor.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)


if __name__ == "__main__":
    main()
