# -- ParticleFluids CLI Entry -- #

from ParticleFluids.runner import main

if __name__ == '__main__':
    main()
