import uvicorn

from hls_proxy.vars import HOST, PORT


def main():
    uvicorn.run("hls_proxy.server:app", host=HOST, port=PORT, proxy_headers=True)


if __name__ == "__main__":
    main()
